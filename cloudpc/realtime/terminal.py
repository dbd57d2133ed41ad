"""
Terminal session state and the simulated shell.

``execute_command`` is a closed, deterministic lookup: it never runs
anything on the host. Only ``date`` and ``uptime`` depend on the clock.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_PROCESS_STARTED = time.monotonic()

DEFAULT_HISTORY_LIMIT = 100

HELP_TEXT = """Cloud PC Web Terminal Help

Available commands:
  Basics:
    help          - show this help
    clear         - clear the screen
    whoami        - show the current user
    pwd           - show the current directory
    ls/dir        - list directory contents
    cat           - print a file
    echo          - print text
    mkdir         - create a directory
    rm            - remove a file
    cp            - copy a file
    mv            - move a file
    chmod         - change permissions

  System:
    ps            - list processes
    top           - show system load
    uname         - show the kernel
    hostname      - show the host name
    uptime        - show the uptime
    date          - show date and time

  Network:
    ipconfig      - show network configuration
    ifconfig      - show network interfaces
    netstat       - show network connections

  Disk:
    df            - show disk usage
    free          - show memory usage

  Other:
    history       - show command history
    exit/logout   - leave the terminal

Contact support for more help."""

DIRECTORY_LISTING = """total 16
drwxr-xr-x 2 cloudpc cloudpc 4096 Jan 15 10:00 Desktop
drwxr-xr-x 2 cloudpc cloudpc 4096 Jan 15 10:00 Documents
drwxr-xr-x 2 cloudpc cloudpc 4096 Jan 15 10:00 Downloads
-rw-r--r-- 1 cloudpc cloudpc 1234 Jan 15 10:00 readme.txt
-rw-r--r-- 1 cloudpc cloudpc 5678 Jan 15 10:00 config.json"""

PROCESS_LISTING = """  PID TTY          TIME CMD
    1 ?        00:00:01 systemd
 1234 ?        00:00:00 cloudpc-service
 5678 pts/0    00:00:00 bash
 9012 pts/0    00:00:00 web-terminal"""

SYSTEM_INFO = """Load average: 0.15, 0.10, 0.05
CPU: Intel(R) Xeon(R) Gold 6248R @ 3.00GHz (4 cores)
Memory: 8.0GB total, 4.2GB used, 3.8GB free
Disk: 100GB total, 45.2GB used, 54.8GB free
Uptime: 2 days, 14 hours, 30 minutes"""

DISK_USAGE = """Filesystem     1K-blocks      Used Available Use% Mounted on
/dev/sda1       104857600  46213120  58644640  45% /
tmpfs             8388608         0   8388608   0% /dev/shm
/dev/sdb1       209715200 125829120  83886080  60% /data"""

MEMORY_USAGE = """              total        used        free      shared  buff/cache   available
Mem:        8388608     4404019      987654      123456     2994935     3772159
Swap:       2097152           0     2097152"""

VIRTUAL_FILES = {
    "readme.txt": (
        "Welcome to the cloud PC service!\n\n"
        "This is a sample cloud PC environment. Use the web terminal to manage "
        "files and run commands.\n\n"
        "Contact support if you need help."
    ),
    "config.json": """{
  "cloudpc": {
    "instance_id": "cloudpc_123456789",
    "os": "Ubuntu 20.04",
    "cpu": 4,
    "memory": 8,
    "storage": 100,
    "status": "running"
  }
}""",
    "log.txt": (
        "[2024-01-15 10:00:00] System started\n"
        "[2024-01-15 10:05:00] User logged in\n"
        "[2024-01-15 10:10:00] Terminal session started"
    ),
}

FIXED_OUTPUTS: dict[str, Any] = {
    "help": HELP_TEXT,
    "clear": {"type": "clear", "message": "Screen cleared"},
    "whoami": "cloudpc",
    "pwd": "/home/cloudpc",
    "ls": DIRECTORY_LISTING,
    "dir": DIRECTORY_LISTING,
    "ps": PROCESS_LISTING,
    "top": SYSTEM_INFO,
    "systeminfo": SYSTEM_INFO,
    "ipconfig": "Windows IP Configuration",
    "ifconfig": "Network configuration",
    "netstat": "Active connections",
    "uname": "CloudPC Linux 4.19.0",
    "df": DISK_USAGE,
    "free": MEMORY_USAGE,
    "hostname": "cloudpc-instance",
    "exit": {"type": "exit", "message": "Terminal session closed"},
    "logout": {"type": "exit", "message": "Logged out"},
}


@dataclass(frozen=True)
class HistoryEntry:
    command: str
    output: Any
    timestamp: datetime


@dataclass
class TerminalSession:
    """
    Pseudo-shell state for one connection.

    ``history`` is a bounded deque: appending past ``history_limit`` evicts
    the oldest entry.
    """

    session_id: str
    cloudpc_id: str
    user_id: str
    history_limit: int = DEFAULT_HISTORY_LIMIT
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)
    is_active: bool = True
    resize_info: dict[str, Any] | None = None
    history: deque = field(init=False)

    def __post_init__(self):
        self.history = deque(maxlen=self.history_limit)

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def record(self, command: str, output: Any) -> HistoryEntry:
        entry = HistoryEntry(command, output, datetime.now(timezone.utc))
        self.history.append(entry)
        self.touch()
        return entry


def _format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    return f"{days} days, {hours} hours, {rest // 60} minutes"


def _command_history(command: str, session: TerminalSession | None) -> str:
    previous = [entry.command for entry in session.history] if session else []
    recent = [*previous, command][-10:]
    return "\n".join(f"{i}  {cmd}" for i, cmd in enumerate(recent, start=1))


def _read_file(name: str) -> str:
    return VIRTUAL_FILES.get(name, f"cat: {name}: No such file or directory")


def execute_command(command: str, session: TerminalSession | None = None) -> Any:
    """
    Answer ``command`` from the simulator tables.

    Returns a string, or a ``{"type": ..., "message": ...}`` dict for
    commands the client renders itself (``clear``, ``exit``, ``logout``).
    """
    normalized = command.strip().lower()

    if normalized == "":
        return ""

    if normalized.startswith("cat "):
        return _read_file(normalized[4:].strip())
    if normalized.startswith("echo "):
        return normalized[5:].strip()
    if normalized.startswith("mkdir "):
        return f'Directory "{normalized[6:].strip()}" created'
    if normalized.startswith("rm "):
        return f'File "{normalized[3:].strip()}" removed'
    if normalized.startswith("cp "):
        return "Copy complete"
    if normalized.startswith("mv "):
        return "Move complete"
    if normalized.startswith("chmod "):
        return "Permissions updated"
    if normalized.startswith("sudo "):
        return "Administrator privileges required"

    if normalized == "date":
        return datetime.now(timezone.utc).strftime("%a %b %d %H:%M:%S UTC %Y")
    if normalized == "uptime":
        return _format_uptime(time.monotonic() - _PROCESS_STARTED)
    if normalized == "history":
        return _command_history(command, session)

    if normalized in FIXED_OUTPUTS:
        return FIXED_OUTPUTS[normalized]

    return f"bash: {command}: command not found\nType 'help' to see available commands."
