"""Service definitions for running the daemon under an init system."""

import shutil
import sys
from enum import Enum
from pathlib import Path
from typing import Optional


class ServiceType(str, Enum):
    LAUNCHD = "launchd"    # macOS launchd agent
    SYSTEMD = "systemd"    # Linux systemd user service
    OPENRC = "openrc"      # Linux OpenRC init script


def resolve_binary_path() -> str:
    """Absolute path of the `chitin` executable, falling back to argv[0]."""
    found = shutil.which("chitin")
    if found:
        return str(Path(found).resolve())
    return str(Path(sys.argv[0]).resolve())


def generate(service_type: ServiceType, binary_path: Optional[str] = None) -> str:
    """
    Render a service file that runs `<binary> daemon`.

    Args:
        service_type: Target init system
        binary_path: Executable to run (default: the installed `chitin`)
    """
    binary_path = binary_path or resolve_binary_path()
    templates = {
        ServiceType.LAUNCHD: _launchd,
        ServiceType.SYSTEMD: _systemd,
        ServiceType.OPENRC: _openrc,
    }
    return templates[ServiceType(service_type)](binary_path)


def _launchd(binary_path: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>com.user.chitin</string>
    <key>ProgramArguments</key>
    <array>
        <string>{binary_path}</string>
        <string>daemon</string>
    </array>
    <key>KeepAlive</key>
    <true/>
    <key>RunAtLoad</key>
    <true/>
    <key>StandardOutPath</key>
    <string>/tmp/chitin.log</string>
    <key>StandardErrorPath</key>
    <string>/tmp/chitin.error.log</string>
</dict>
</plist>
"""


def _systemd(binary_path: str) -> str:
    return f"""[Unit]
Description=Chitin AI Shell Assistant Daemon

[Service]
ExecStart={binary_path} daemon
ExecReload=/bin/kill -HUP $MAINPID
Restart=always
RestartSec=5
Type=simple

[Install]
WantedBy=default.target
"""


def _openrc(binary_path: str) -> str:
    return f"""#!/sbin/openrc-run

name="chitin"
description="Chitin AI Shell Assistant Daemon"
command="{binary_path}"
command_args="daemon"
command_background=true
pidfile="/run/chitin.pid"
extra_started_commands="reload"

depend() {{
    need net
}}

reload() {{
    ebegin "Reloading ${{name}}"
    start-stop-daemon --signal HUP --pidfile "${{pidfile}}"
    eend $?
}}
"""
