# -*- coding: utf-8 -*-
"""# KGrip

Controller for the K-Force Grip serial dynamometer.

The package discovers the instrument over USB serial, reads its calibration
coefficient, waits for a stable at-rest baseline, captures a bounded grip
measurement and reports every step to a peer process over a ZeroMQ channel
(and to an optional display callback).

- `kgrip.meas` : baseline detection, measurement sessions and the device controller
- `kgrip.server` : job queue, messaging gateway and the server entry point
- `kgrip.device` : the serial instrument, its wire codec and a mock
- `kgrip.types` : commands, configuration, status messages and errors
- `kgrip.util` : logging, scheduling, settings files, hardware enumeration
"""

from ._version import __version__
