"""
SSH/SFTP transfer of app bundles from the device.

This module copies a remote app bundle directory tree to local storage,
keeping file permissions and modification times so the local copy
matches the bundle on the device.
"""

from __future__ import annotations

import logging
import os
import posixpath
import stat
from pathlib import Path
from typing import Any, Optional

import paramiko

from appcrypt.constants import (
    DEFAULT_SSH_HOST,
    DEFAULT_SSH_PASSWORD,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_TIMEOUT,
    DEFAULT_SSH_USER,
)
from appcrypt.exceptions import SSHConnectionError, TransferError

logger = logging.getLogger(__name__)


class BundleTransfer:
    """
    SFTP session to a jailbroken device.

    Example:
        with BundleTransfer("localhost", 2222) as transfer:
            transfer.pull_dir("/var/containers/Bundle/Application/.../App.app",
                              Path("./work/App.app"))
    """

    def __init__(
        self,
        host: str = DEFAULT_SSH_HOST,
        port: int = DEFAULT_SSH_PORT,
        username: str = DEFAULT_SSH_USER,
        password: str = DEFAULT_SSH_PASSWORD,
        timeout: int = DEFAULT_SSH_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[Any] = None

    @property
    def sftp(self) -> Any:
        """Get the open SFTP client."""
        if self._sftp is None:
            raise TransferError("Not connected. Call connect() first.")
        return self._sftp

    def connect(self) -> BundleTransfer:
        """
        Open the SSH connection and SFTP session.

        Raises:
            SSHConnectionError: If the connection fails.
        """
        ssh = paramiko.SSHClient()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        logger.debug(f"Connecting via SSH to {self.host}:{self.port}")
        try:
            ssh.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                look_for_keys=False,
                allow_agent=False,
            )
            sftp = ssh.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            ssh.close()
            raise SSHConnectionError(f"{self.host}:{self.port}", str(e)) from e

        self._ssh = ssh
        self._sftp = sftp
        return self

    def pull_dir(self, remote_path: str, local_path: Path) -> int:
        """
        Recursively copy a remote directory.

        Args:
            remote_path: Directory on the device.
            local_path: Local destination, created as needed.

        Returns:
            Number of files copied.

        Raises:
            TransferError: If a directory cannot be listed or a file copied.
        """
        try:
            entries = self.sftp.listdir_attr(remote_path)
        except OSError as e:
            raise TransferError("Failed to read remote directory", f"{remote_path}: {e}") from e

        count = 0
        for entry in entries:
            remote_entry = posixpath.join(remote_path, entry.filename)
            local_entry = Path(local_path) / entry.filename

            if stat.S_ISDIR(entry.st_mode or 0):
                count += self.pull_dir(remote_entry, local_entry)
            else:
                Path(local_path).mkdir(parents=True, exist_ok=True)
                self.pull_file(remote_entry, local_entry)
                count += 1

        return count

    def pull_file(self, remote_path: str, local_path: Path) -> None:
        """
        Copy one remote file, then apply its mode and modification time.

        Raises:
            TransferError: If the file cannot be copied.
        """
        try:
            self.sftp.get(remote_path, str(local_path))
            attrs = self.sftp.stat(remote_path)
        except OSError as e:
            raise TransferError("Failed to pull file", f"{remote_path}: {e}") from e

        if attrs.st_mode is not None:
            try:
                os.chmod(local_path, stat.S_IMODE(attrs.st_mode))
            except OSError as e:
                logger.warning(f"Failed to set file permissions on {local_path}: {e}")

        if attrs.st_mtime is not None:
            try:
                os.utime(local_path, (attrs.st_mtime, attrs.st_mtime))
            except OSError as e:
                logger.warning(f"Failed to set file timestamps on {local_path}: {e}")

    def close(self) -> None:
        """Close the SFTP session and SSH connection."""
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None

    def __enter__(self) -> BundleTransfer:
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
