"""
Command-line interface for kgrip.

- `serve` : run the grip server
- `ports` : list serial ports (with `--usb`, their vendor/product ids)
- `send` : act as the host application and send one command

Examples
--------
Running against the mock grip and driving it from a second shell:
```bash
$ kgrip serve --mock
$ kgrip send measureStart --wait 15
```

CLI Tree
--------

```
$ kgrip --tree
cli
└── ports
└── send
└── serve
```
"""

from .base import cli

__all__ = ["cli"]
