# -*- coding: utf-8 -*-
# pydoit task file
# see https://pydoit.org/
# run from this dir with `doit`, or `doit list`, `doit help` etc. (pip install doit 1st)

from doit.action import CmdAction

SPEEDS = {
    "slow": ["-m", "slow"],
    "not slow": ["-m", '"not slow"'],
    "fast": ["-m", '"not slow"'],
    "all": [],
    "": [],
}

TEST_PARAMS = [
    {"name": "help", "long": "help", "default": False, "type": bool},
    {"name": "keyword", "short": "k", "default": ""},
    {"name": "speed", "short": "s", "default": ""},
    {"name": "retry", "short": "r", "default": False, "type": bool},
    {"name": "print_logs", "short": "p", "default": False, "type": bool},
    {"name": "full_trace", "short": "f", "default": False, "type": bool},
]

TEST_HELP = """echo '
{title}
====================

Filter Options:
  -k, --keyword TEXT    Only run test matching the keyword expression
                        Example: -k "queue and not slow"
  -s, --speed TEXT      "slow", "fast" (= "not slow") or "all"
  -r, --retry           Only run previously failed test

Output Options:
  -p, --print-logs      Print test logs to console instead of capturing
  -f, --full-trace      Show full traceback on errors

Examples:
  doit {task}                 # Run all test
  doit {task} -k controller   # Run test containing "controller"
  doit {task} -s fast -p      # Run fast test with logs
  '"""


def _build_pytest_command(
    test_dir, keyword="", speed="", retry=False, print_logs=False, full_trace=False
):
    """Helper function to build pytest commands for test tasks."""
    if speed not in SPEEDS:
        raise ValueError(f"Invalid speed filter: {speed}. Use 'slow', 'fast' or 'all'")
    cmd = ["pytest"]
    if print_logs:
        cmd.append("--capture=no")
    if full_trace:
        cmd.append("--full-trace")
    cmd.extend(["--color=yes", "-vv", "-x"])
    if retry:
        cmd.append("--lf")
    if keyword:
        cmd.extend(["-k", keyword])
    cmd.extend(SPEEDS[speed])
    cmd.append(test_dir)
    return " ".join(cmd)


def _test_task(test_dir, title, task):
    def router(keyword, speed, retry, print_logs, full_trace, help=False):
        if help:
            return TEST_HELP.format(title=title, task=task)
        try:
            return _build_pytest_command(
                test_dir, keyword, speed, retry, print_logs, full_trace
            )
        except ValueError as e:
            return f"echo 'Error: {str(e)}' && exit 1"

    return {"actions": [CmdAction(router)], "params": TEST_PARAMS, "verbosity": 2}


def task_install():
    """Install kgrip in editable mode, with test extras"""
    return {"actions": ["pip install -e .[test]"], "verbosity": 2}


def task_test_logic():
    """Run the logic test suite (test in test/logic/)."""
    return _test_task("test/logic/", "Test Logic Runner Help", "test_logic")


def task_test_hardware():
    """Run the hardware test suite (test in test/hardware/, needs a grip plugged in)."""
    return _test_task("test/hardware/", "Test Hardware Runner Help", "test_hardware")


def task_format():
    """Format code using ruff."""
    return {
        "actions": [
            "ruff check --select I --fix src/kgrip test/ dodo.py",
            "ruff format src/kgrip test/ dodo.py",
        ],
        "verbosity": 2,
    }
