"""Shared install and uninstall workflow for every package format.

Each format contributes a narrow ``PackageStrategy``; ``Backend`` runs the
same three phases for all of them:

1. Resolve identity: derive and validate the install id before any
   directory upkg owns is touched.
2. Materialize: move replaced targets aside, then copy the staged payload
   into place, registering a compensating action for every created object.
3. Integrate: icons, desktop entry and cache refresh.

Extraction always happens in a private temporary directory; the payload
only reaches the bin, apps, icon and applications directories after it
has been validated and the install id is known to be free.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from upkg.backends.base import BackendContext, PackageStrategy
from upkg.backends.desktop_metadata import has_electron_resources
from upkg.constants import (
    DESKTOP_EXEC_FIELD_CODE,
    DESKTOP_GENERIC_ICON,
    ELECTRON_NO_SANDBOX_FLAG,
    WAYLAND_ENV_VARS,
)
from upkg.core.heuristics import find_executables
from upkg.core.safety import is_path_within_directory
from upkg.core.transaction import Transaction, register, remove_path, set_aside
from upkg.domain.types import (
    InstallOptions,
    InstallRecord,
    PackageMetadata,
    PackageType,
    PayloadLayout,
    RecordMetadata,
    StagedPayload,
    WaylandSupport,
)
from upkg.exceptions import (
    AlreadyInstalledError,
    InstallationError,
    IntegrationError,
    PackageNotFoundError,
    ValidationError,
)
from upkg.infrastructure.cache import refresh_desktop_caches
from upkg.infrastructure.desktop_entry import (
    DesktopEntry,
    build_exec_command,
    desktop_file_name,
    inject_wayland_env,
    validate_desktop_file,
    write_desktop_file,
)
from upkg.infrastructure.icon import (
    discover_icons,
    find_dir_icon,
    icon_destination,
    install_icon,
    select_icons,
)
from upkg.logger import get_logger
from upkg.utils.naming import (
    clean_app_name,
    extract_version_from_filename,
    format_display_name,
    normalize_filename,
    strip_package_extension,
)
from upkg.utils.validation import (
    sanitize_string,
    validate_package_name,
    validate_version,
)

logger = get_logger(__name__)

STAGING_PREFIX = "upkg-stage-"
WRAPPER_MARKER = "# upkg wrapper script"


@dataclass(frozen=True)
class Identity:
    """Resolved names of the application being installed."""

    install_id: str
    display_name: str


@dataclass(frozen=True)
class InstallTargets:
    """Paths an install will create, derived from the install id."""

    install_path: Path
    wrapper: Path | None
    desktop_file: Path

    def occupied(self) -> list[Path]:
        """Return the targets that already exist."""
        paths = [self.install_path, self.wrapper, self.desktop_file]
        return [p for p in paths if p is not None and (p.exists() or p.is_symlink())]


@dataclass
class UninstallReport:
    """Outcome of removing the artifacts of one install record."""

    install_id: str
    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no artifact removal failed."""
        return not self.failed


def resolve_identity(
    source: Path, metadata: PackageMetadata, options: InstallOptions
) -> Identity:
    """Derive the install id and display name for a package.

    The name comes from ``custom_name``, then embedded metadata, then the
    cleaned source file name.

    Raises:
        NameValidationError: If the normalized id is unsafe

    """
    if options.custom_name:
        raw_name = options.custom_name
        display_name = sanitize_string(options.custom_name).strip()
    else:
        raw_name = metadata.name or clean_app_name(
            strip_package_extension(source.name)
        )
        display_name = (
            sanitize_string(metadata.display_name).strip()
            if metadata.display_name
            else format_display_name(normalize_filename(raw_name))
        )

    install_id = normalize_filename(raw_name)
    validate_package_name(install_id)
    return Identity(install_id, display_name or install_id)


def record_artifacts(record: InstallRecord) -> list[str]:
    """Return every filesystem path an install record owns."""
    artifacts = [
        record.install_path,
        record.metadata.wrapper_script,
        *record.desktop_files,
        *record.metadata.icon_files,
    ]
    return [artifact for artifact in artifacts if artifact]


def render_wrapper_script(
    executable: Path, *, electron: bool = False, no_sandbox: bool = False
) -> str:
    """Build the bin-directory launcher for a tree install."""
    if electron:
        flag = f" {ELECTRON_NO_SANDBOX_FLAG}" if no_sandbox else ""
        return (
            "#!/bin/bash\n"
            f"{WRAPPER_MARKER}\n"
            f'cd "{executable.parent}" || exit 1\n'
            f'exec "./{executable.name}"{flag} "$@"\n'
        )
    return f'#!/bin/bash\n{WRAPPER_MARKER}\nexec "{executable}" "$@"\n'


class Backend:
    """Install engine for one package format."""

    def __init__(self, strategy: PackageStrategy, context: BackendContext) -> None:
        """Initialize backend.

        Args:
            strategy: Format-specific detection, staging and metadata
            context: Paths, command runner and settings

        """
        self.strategy = strategy
        self.context = context

    @property
    def package_type(self) -> PackageType:
        """Package format handled by this backend."""
        return self.strategy.package_type

    @property
    def name(self) -> str:
        """Short backend name, e.g. ``appimage``."""
        return self.strategy.package_type.value

    def detect(self, path: Path) -> bool:
        """Return True if this backend handles ``path``."""
        return self.strategy.detect(path)

    # ------------------------------------------------------------------
    # install
    # ------------------------------------------------------------------

    async def install(
        self,
        source: Path,
        options: InstallOptions | None = None,
        tx: Transaction | None = None,
    ) -> InstallRecord:
        """Install a package file.

        Every mutation of an owned directory is registered with ``tx``;
        on failure the caller rolls it back. ``tx=None`` installs without
        rollback tracking.

        Returns:
            Record describing the installed artifacts

        Raises:
            PackageNotFoundError: If ``source`` is not a file
            NameValidationError: If the derived install id is unsafe
            AlreadyInstalledError: If targets exist and force is not set
            ExtractionError: If the payload cannot be extracted
            SafetyViolationError: If the payload contains unsafe entries
            InstallationError: If the payload cannot be copied into place
            IntegrationError: If the desktop entry cannot be written

        """
        options = options or InstallOptions()
        if not source.is_file():
            msg = "file does not exist"
            raise PackageNotFoundError(msg, str(source))

        if options.custom_name:
            validate_package_name(normalize_filename(options.custom_name))

        logger.info("Installing %s as %s package", source.name, self.name)
        with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX) as tmp:
            staging = Path(tmp)
            payload = await self.strategy.extract_or_stage(
                source, staging, self.context
            )
            metadata = self.strategy.parse_metadata(payload)
            identity = resolve_identity(source, metadata, options)
            targets = self._targets(identity.install_id, payload.layout)
            self._check_collision(identity, targets, options, tx)

            record = await self._install_payload(
                source, payload, metadata, identity, targets, options, tx
            )

        logger.info("Installed %s (%s)", record.name, record.install_path)
        return record

    def _targets(self, install_id: str, layout: PayloadLayout) -> InstallTargets:
        paths = self.context.paths
        desktop_file = paths.applications_dir / desktop_file_name(install_id)
        if layout is PayloadLayout.TREE:
            return InstallTargets(
                install_path=paths.apps_dir / install_id,
                wrapper=paths.bin_dir / install_id,
                desktop_file=desktop_file,
            )
        filename = (
            f"{install_id}.appimage"
            if self.package_type is PackageType.APPIMAGE
            else install_id
        )
        return InstallTargets(
            install_path=paths.bin_dir / filename,
            wrapper=None,
            desktop_file=desktop_file,
        )

    def _check_collision(
        self,
        identity: Identity,
        targets: InstallTargets,
        options: InstallOptions,
        tx: Transaction | None,
    ) -> None:
        occupied = targets.occupied()
        if not occupied:
            return
        if not options.force:
            msg = (
                f"{occupied[0]} already exists (use --force to reinstall)"
            )
            raise AlreadyInstalledError(msg, identity.install_id)

        for path in occupied:
            logger.info("Replacing existing %s", path)
            try:
                set_aside(tx, path)
            except OSError as e:
                msg = f"cannot replace existing {path}: {e}"
                raise InstallationError(msg, identity.install_id) from e

    async def _install_payload(
        self,
        source: Path,
        payload: StagedPayload,
        metadata: PackageMetadata,
        identity: Identity,
        targets: InstallTargets,
        options: InstallOptions,
        tx: Transaction | None,
    ) -> InstallRecord:
        install_id = identity.install_id
        if payload.layout is PayloadLayout.TREE:
            executable, launcher = self._materialize_tree(
                payload, metadata, identity, targets, tx
            )
        else:
            executable = launcher = self._materialize_file(payload, targets, tx)

        icon_files = self._install_icons(payload, metadata, install_id, tx)

        desktop_files: list[str] = []
        wayland = WaylandSupport.UNKNOWN
        if not options.skip_desktop:
            exec_command, wayland = self._exec_command(
                launcher, payload.layout, metadata, options
            )
            if icon_files:
                icon_name = install_id
            elif metadata.icon and "/" not in metadata.icon:
                icon_name = metadata.icon
            else:
                icon_name = DESKTOP_GENERIC_ICON

            entry = DesktopEntry(
                name=identity.display_name,
                exec_command=exec_command,
                icon=icon_name,
                comment=metadata.comment or "",
                categories=list(metadata.categories),
                startup_wm_class=metadata.startup_wm_class,
            )
            register(tx, f"remove {targets.desktop_file}", targets.desktop_file)
            try:
                desktop_path = write_desktop_file(
                    entry, self.context.paths.applications_dir, install_id
                )
            except OSError as e:
                msg = f"cannot write desktop entry: {e}"
                raise IntegrationError(msg, install_id) from e
            desktop_files.append(str(desktop_path))
            await validate_desktop_file(desktop_path, self.context.runner)

        await self._refresh_caches()

        logger.debug("Main executable for %s: %s", install_id, executable)
        return InstallRecord(
            install_id=install_id,
            package_type=self.package_type,
            name=identity.display_name,
            version=self._version(source, metadata),
            install_path=str(targets.install_path),
            original_file=str(source.resolve()),
            desktop_files=desktop_files,
            metadata=RecordMetadata(
                icon_files=icon_files,
                wrapper_script=str(targets.wrapper) if targets.wrapper else None,
                wayland_support=wayland,
                categories=list(metadata.categories),
                comment=metadata.comment,
                startup_wm_class=metadata.startup_wm_class,
                original_desktop_file=(
                    metadata.desktop_file.name if metadata.desktop_file else None
                ),
            ),
        )

    def _materialize_file(
        self, payload: StagedPayload, targets: InstallTargets, tx: Transaction | None
    ) -> Path:
        source = payload.executable or payload.source
        destination = targets.install_path
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            register(tx, f"remove {destination}", destination)
            shutil.copyfile(source, destination)
            destination.chmod(0o755)
        except OSError as e:
            msg = f"cannot copy {source.name} to {destination}: {e}"
            raise InstallationError(msg, destination.name) from e
        logger.debug("Copied %s to %s", source.name, destination)
        return destination

    def _materialize_tree(
        self,
        payload: StagedPayload,
        metadata: PackageMetadata,
        identity: Identity,
        targets: InstallTargets,
        tx: Transaction | None,
    ) -> tuple[Path, Path]:
        """Copy an extracted tree and write its wrapper script.

        Returns:
            (main executable inside the install dir, wrapper script)

        """
        root = payload.root
        if root is None or not root.is_dir():
            msg = "payload has no extracted tree"
            raise InstallationError(msg, identity.install_id)

        staged_executable = self._select_executable(root, payload, metadata, identity)
        relative = staged_executable.relative_to(os.path.realpath(root))
        metadata.is_electron = metadata.is_electron or has_electron_resources(
            staged_executable.parent
        )

        install_dir = targets.install_path
        wrapper = targets.wrapper or self.context.paths.bin_dir / identity.install_id
        try:
            install_dir.parent.mkdir(parents=True, exist_ok=True)
            register(tx, f"remove {install_dir}", install_dir)
            shutil.copytree(root, install_dir, symlinks=True)

            executable = install_dir / relative
            executable.chmod(executable.stat().st_mode | 0o755)

            wrapper.parent.mkdir(parents=True, exist_ok=True)
            register(tx, f"remove {wrapper}", wrapper)
            wrapper.write_text(
                render_wrapper_script(
                    executable,
                    electron=metadata.is_electron,
                    no_sandbox=self.context.desktop["electron_disable_sandbox"],
                ),
                encoding="utf-8",
            )
            wrapper.chmod(0o755)
        except (OSError, shutil.Error) as e:
            msg = f"cannot install application tree: {e}"
            raise InstallationError(msg, identity.install_id) from e

        logger.debug("Installed tree to %s, wrapper %s", install_dir, wrapper)
        return executable, wrapper

    def _select_executable(
        self,
        root: Path,
        payload: StagedPayload,
        metadata: PackageMetadata,
        identity: Identity,
    ) -> Path:
        """Find the main executable in a staged tree (as a real path)."""
        real_root = os.path.realpath(root)

        candidate = payload.executable or self._executable_from_hint(
            root, metadata.exec_hint, identity.install_id
        )
        if candidate is None:
            candidate = self.context.scorer.choose_best(
                find_executables(root), identity.install_id, root
            )
        if candidate is None:
            msg = "no executable found in package"
            raise InstallationError(msg, identity.install_id)

        real_path = os.path.realpath(candidate)
        if not is_path_within_directory(real_root, real_path) or not os.path.isfile(
            real_path
        ):
            msg = f"executable {candidate.name} resolves outside the package"
            raise InstallationError(msg, identity.install_id)
        return Path(real_path)

    def _executable_from_hint(
        self, root: Path, hint: str | None, install_id: str
    ) -> Path | None:
        if not hint:
            return None
        if hint.startswith("/"):
            candidate = root / hint.lstrip("/")
            real_path = os.path.realpath(candidate)
            if is_path_within_directory(os.path.realpath(root), real_path) and (
                os.path.isfile(real_path) and os.access(real_path, os.X_OK)
            ):
                return candidate
            return None

        name = Path(hint).name
        matches = [p for p in find_executables(root) if p.name == name]
        return self.context.scorer.choose_best(matches, install_id, root)

    def _install_icons(
        self,
        payload: StagedPayload,
        metadata: PackageMetadata,
        install_id: str,
        tx: Transaction | None,
    ) -> list[str]:
        if payload.root is None:
            return []

        icons = discover_icons(payload.root)
        names = [install_id]
        if metadata.icon:
            names.insert(0, Path(metadata.icon).stem)
        selected = select_icons(icons, names)
        if not selected:
            dir_icon = find_dir_icon(payload.root)
            selected = [dir_icon] if dir_icon else []

        installed: list[str] = []
        icons_dir = self.context.paths.icons_dir
        for icon in selected:
            destination = icon_destination(icons_dir, icon, install_id)
            try:
                if destination.exists() or destination.is_symlink():
                    set_aside(tx, destination)
                register(tx, f"remove {destination}", destination)
                install_icon(icon, icons_dir, install_id)
            except OSError as e:
                logger.warning("Skipping icon %s: %s", icon.path.name, e)
                continue
            installed.append(str(destination))

        if not installed:
            logger.debug("No icons installed for %s", install_id)
        return installed

    def _exec_command(
        self,
        launcher: Path,
        layout: PayloadLayout,
        metadata: PackageMetadata,
        options: InstallOptions,
    ) -> tuple[str, WaylandSupport]:
        desktop = self.context.desktop
        args: list[str] = []
        # Tree installs get the flag from their wrapper script
        if (
            layout is PayloadLayout.FILE
            and metadata.is_electron
            and desktop["electron_disable_sandbox"]
        ):
            args.append(ELECTRON_NO_SANDBOX_FLAG)
        args.append(DESKTOP_EXEC_FIELD_CODE)
        exec_command = build_exec_command(launcher, *args)

        if options.skip_wayland_env:
            return exec_command, WaylandSupport.UNKNOWN

        env_vars: list[str] = []
        wayland = WaylandSupport.UNKNOWN
        is_tauri = "tauri" in (metadata.startup_wm_class or "").lower()
        if desktop["wayland_env_vars"] and not is_tauri:
            env_vars.extend(WAYLAND_ENV_VARS)
            wayland = WaylandSupport.HYBRID
        env_vars.extend(desktop["custom_env_vars"])
        return inject_wayland_env(exec_command, env_vars), wayland

    def _version(self, source: Path, metadata: PackageMetadata) -> str | None:
        version = metadata.version or extract_version_from_filename(source.name)
        if not version:
            return None
        try:
            validate_version(version)
        except ValidationError as e:
            logger.warning("Ignoring version: %s", e)
            return None
        return version

    async def _refresh_caches(self) -> None:
        paths = self.context.paths
        if not await refresh_desktop_caches(
            self.context.runner, paths.applications_dir, paths.icons_dir
        ):
            logger.debug("Desktop caches not fully refreshed")

    # ------------------------------------------------------------------
    # uninstall
    # ------------------------------------------------------------------

    def _is_owned(self, path: Path) -> bool:
        for directory in self.context.paths.owned_dirs():
            if path != directory and is_path_within_directory(directory, path):
                return True
        return False

    async def uninstall(self, record: InstallRecord) -> UninstallReport:
        """Remove everything an install record describes.

        Each artifact is removed independently. Missing files count as
        already removed; other failures are logged and reported without
        stopping the remaining removals. Paths outside the directories
        upkg owns are never deleted.
        """
        report = UninstallReport(record.install_id)
        for artifact in record_artifacts(record):
            path = Path(artifact)
            if not self._is_owned(path):
                logger.warning("Refusing to remove %s: not managed by upkg", path)
                report.failed.append((artifact, "outside managed directories"))
                continue
            if not path.exists() and not path.is_symlink():
                report.missing.append(artifact)
                continue
            try:
                remove_path(path)
            except OSError as e:
                logger.warning("Failed to remove %s: %s", path, e)
                report.failed.append((artifact, str(e)))
                continue
            logger.debug("Removed %s", path)
            report.removed.append(artifact)

        await self._refresh_caches()
        logger.info(
            "Uninstalled %s (%d removed, %d already absent)",
            record.install_id,
            len(report.removed),
            len(report.missing),
        )
        return report
