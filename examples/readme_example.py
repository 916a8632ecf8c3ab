# Acts as the host application against a running `kgrip serve` (add --mock to
# try it without a grip plugged in).
import kgrip.server

conn = kgrip.server.open_connection("127.0.0.1", 5555)

kgrip.server.send_command(conn, "measureStart", patientId="demo")
kgrip.server.wait_for_status(conn, "device_found", timeout=40)
print("Grip found, hold it still to set the baseline")
kgrip.server.wait_for_status(conn, "baseline_ok", timeout=40)
print("Squeeze!")

finish = kgrip.server.wait_for_status(conn, "measure_finish", timeout=40)
print(f"max {finish['max']} kg, avg {finish['avg']} kg")
print(f"samples {finish['rawMeasures']}")

kgrip.server.close_connection(conn)
