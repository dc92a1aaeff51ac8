"""
End-to-end inspection of an installed app.

BundleSync pulls an app bundle from the device, removes non-essential
metadata, scans the local copy for encrypted binaries, asks the device
which executable is the main one and which extensions exist, and
classifies the binaries accordingly.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from appcrypt.config import Config
from appcrypt.constants import HELPER_PROCESS
from appcrypt.core.classifier import classify
from appcrypt.core.cleanup import cleanup_bundle
from appcrypt.core.models import (
    Application,
    ClassificationResult,
    Diagnostic,
    ScanResult,
    SubBundleDescriptor,
)
from appcrypt.core.scanner import scan_bundle
from appcrypt.device.frida_client import FridaClient, FridaDeviceInfo, load_query_script
from appcrypt.device.transfer import BundleTransfer
from appcrypt.exceptions import ProcessNotFoundError, ScriptError

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Everything learned about one app."""

    application: Application
    device: FridaDeviceInfo
    local_path: Path
    main_executable: str
    sub_bundles: list[SubBundleDescriptor]
    scan: ScanResult
    classification: ClassificationResult
    removed: list[Path] = field(default_factory=list)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        """Scan and classification diagnostics together."""
        return self.scan.diagnostics + self.classification.diagnostics

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "application": self.application.to_dict(),
            "local_path": str(self.local_path),
            "main_executable": self.main_executable,
            "extensions": [s.to_dict() for s in self.sub_bundles],
            "files_scanned": self.scan.files_scanned,
            "removed": [str(p) for p in self.removed],
            "binaries": self.classification.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class BundleSync:
    """
    Pull, clean, scan and classify an app bundle.

    Example:
        with FridaClient() as client:
            report = BundleSync(client, get_config()).run("com.example.App")
            for path in report.classification.main_binaries:
                print(path)
    """

    def __init__(
        self,
        client: FridaClient,
        config: Config,
        transfer_factory: Callable[..., BundleTransfer] = BundleTransfer,
    ):
        self.client = client
        self.config = config
        self.transfer_factory = transfer_factory

    def run(self, bundle_id: str, work_dir: Optional[Path] = None) -> SyncReport:
        """
        Inspect an installed app.

        Args:
            bundle_id: App bundle identifier.
            work_dir: Local directory for the pulled bundle (defaults to
                the configured work directory).

        Raises:
            JailbreakRequiredError: If the device is not jailbroken.
            AppNotFoundError: If the app is not installed.
            TransferError: If the bundle cannot be copied.
            ScanError: If the local copy cannot be scanned.
            ProcessNotFoundError: If the helper process is not running.
            ScriptError: If the bundle query script fails.
        """
        device = self.client.require_jailbroken()
        application = self.client.get_application(bundle_id)
        logger.info(f"Found app: {application.name} ({bundle_id}) at {application.path}")

        local_path = Path(work_dir or self.config.work_dir) / bundle_id
        self.pull(application, local_path)

        removed = cleanup_bundle(
            local_path,
            self.config.cleanup.remove_files,
            self.config.cleanup.remove_dirs,
        )

        scan = scan_bundle(local_path, workers=self.config.scan.workers)
        for record in scan.records:
            logger.info(f"Collected binary {record}")

        self.require_helper()

        main_executable, sub_bundles = self.query_bundle(application)
        classification = classify(scan.records, main_executable, sub_bundles)

        logger.info(f"Found main app binaries: {sorted(classification.main_binaries)}")
        for sub_id, group in classification.sub_bundle_binaries.items():
            logger.info(f"Found extension binaries for {sub_id}: {sorted(group)}")

        return SyncReport(
            application=application,
            device=device,
            local_path=local_path,
            main_executable=main_executable,
            sub_bundles=sub_bundles,
            scan=scan,
            classification=classification,
            removed=removed,
        )

    def pull(self, application: Application, local_path: Path) -> None:
        """Replace local_path with a fresh copy of the app bundle."""
        if local_path.exists():
            shutil.rmtree(local_path)
        local_path.mkdir(parents=True)

        ssh = self.config.ssh
        with self.transfer_factory(
            host=ssh.host,
            port=ssh.port,
            username=ssh.username,
            password=ssh.password,
            timeout=ssh.timeout,
        ) as transfer:
            count = transfer.pull_dir(application.path, local_path)

        logger.info(f"Pulled {count} file(s) to {local_path}")

    def require_helper(self) -> int:
        """
        Ensure the helper process is running.

        Raises:
            ProcessNotFoundError: With a hint to start it manually.
        """
        try:
            pid = self.client.get_process_id(HELPER_PROCESS)
        except ProcessNotFoundError as e:
            raise ProcessNotFoundError(
                HELPER_PROCESS,
                f"The '{HELPER_PROCESS}' service is not running on the device. "
                "Please start it manually.",
            ) from e

        logger.info(f"Found {HELPER_PROCESS} process ID {pid}")
        return pid

    def query_bundle(
        self, application: Application
    ) -> tuple[str, list[SubBundleDescriptor]]:
        """
        Ask the device for the main executable and the app extensions.

        Extension paths are rebased onto the bundle root.

        Raises:
            ScriptError: If the script fails or returns malformed data.
        """
        with load_query_script(self.client) as script:
            main_executable = script.call("main", application.identifier)
            extensions = script.call("extensions", application.identifier)

        if not isinstance(main_executable, str):
            raise ScriptError("Failed to decode main app path", repr(main_executable))

        if not isinstance(extensions, list):
            raise ScriptError("Failed to decode extension paths", repr(extensions))

        try:
            sub_bundles = [
                SubBundleDescriptor.from_dict(item).relative_to(application.path)
                for item in extensions
            ]
        except (KeyError, TypeError) as e:
            raise ScriptError("Failed to decode extension paths", str(e)) from e

        logger.debug(f"Main executable: {main_executable}")
        for sub_bundle in sub_bundles:
            logger.debug(f"Extension {sub_bundle.id} at {sub_bundle.bundle_path}")

        return main_executable, sub_bundles
