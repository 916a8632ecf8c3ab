"""Instrument commands and the names used on the messaging channel."""

import types
from enum import IntEnum


class Command(IntEnum):
    """K-Force Grip instrument commands, valued by their wire byte."""

    SET_COEFFICIENT = 0x20
    GET_COEFFICIENT = 0x21
    SAMPLING_OFF = 0x10
    SAMPLING_ON = 0x11
    DEVICE_OFF = 0x7A

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Command.SET_COEFFICIENT: "Set Coefficient",
    Command.GET_COEFFICIENT: "Get Coefficient",
    Command.SAMPLING_OFF: "Sampling off",
    Command.SAMPLING_ON: "Sampling on",
    Command.DEVICE_OFF: "Deactivate device",
}

COEFFICIENT_LENGTH = 6  # bytes, ASCII digits
FRAME_LENGTH = 11  # bytes per sample packet
COEFFICIENT_SCALE = 6  # coefficient = digits / 10**6
BAUD_RATE = 115200

CONSTS = types.SimpleNamespace()

# inbound, `inputData.cmd`
CONSTS.CMD = types.SimpleNamespace()
CONSTS.CMD.MEASURE_START = "measureStart"
CONSTS.CMD.MEASURE_SAMPLING_ON = "measureSamplingOn"
CONSTS.CMD.MEASURE_STOP = "measureStop"
CONSTS.CMD.APP_HIDE = "appHide"
CONSTS.CMD.APP_SHOW = "appShow"
CONSTS.CMD.SHOW_GAUGE = "showGauge"
CONSTS.CMD.HIDE_GAUGE = "hideGauge"

# outbound, `outputData.message`
CONSTS.STATUS = types.SimpleNamespace()
CONSTS.STATUS.DEVICE_FOUND = "device_found"
CONSTS.STATUS.BASELINE_OK = "baseline_ok"
CONSTS.STATUS.BASELINE_STOP = "baseline_stop"
CONSTS.STATUS.MEASURE_RECEIVED = "measure_received"
CONSTS.STATUS.MEASURE_FINISH = "measure_finish"
CONSTS.STATUS.TIMEOUT = "timeout"
CONSTS.STATUS.APP_HIDE = "app_hide"
CONSTS.STATUS.APP_SHOW = "app_show"
CONSTS.STATUS.SHOW_GAUGE = "show_gauge"
CONSTS.STATUS.HIDE_GAUGE = "hide_gauge"
CONSTS.STATUS.SAMPLING_ON = "measureSamplingOn"
CONSTS.STATUS.ERROR = "error"

BASELINE_STOP_CODE = 1001

# job types registered on the outbound queue
CONSTS.JOB = types.SimpleNamespace()
CONSTS.JOB.SEND_STATUS = "zeromqSendMessage"
