"""
Topology synchronization engine.

Keeps the topology file, the graph model, the deployment state and one
panel session consistent while change notifications, saves, lifecycle
transitions and mode switches arrive concurrently.

All mutual exclusion goes through the session's `SyncGuard`:

- an update requested while a pass runs is coalesced into a one-slot
  queue and executed by the same drain loop once the pass completes;
- an update requested during a mode switch is dropped, since the switch
  performs an equivalent refresh itself;
- a mode switch requested during another mode switch is rejected.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Set, Union

from ..config import SyncConfig
from ..deployment.link_state import LinkStateRefresher
from ..deployment.probe import DeploymentState, DeploymentStateProbe
from ..deployment.records import DeploymentSnapshot
from ..deployment.sources import InspectCommandSource
from ..exceptions import (
    ArtifactWriteError,
    ModeSwitchInProgressError,
    TopoSyncError,
    TopologyConvertError,
    TopologyValidationError,
)
from ..panel.session import PanelMode, PanelSession
from ..topology.adapter import ArtifactWriter, TopologyAdapter, parse_topology
from ..topology.annotations import AnnotationSet, AnnotationStore
from ..topology.graph import GraphModel
from ..topology.source import TopologySourceReader, minimal_topology
from ..utils import lab_name_from_path
from .cache import ViewModeCache
from .event_bus import EventBus
from .events import (
    ModeSwitchEvent,
    SyncEvent,
    UpdatePassEvent,
    UpdateQueuedEvent,
    UpdateRejectedEvent,
)
from .state import QueuedUpdate, SyncGuard
from .watcher import ChangeDetector
from .workspace import MemoryWorkspaceState, WorkspaceState

logger = logging.getLogger(__name__)

MODE_SWITCH_REFRESH_FAILED = "Failed to refresh topology data during mode switch"


class TopologySyncEngine:
    """
    Synchronization engine for one topology document and its panel.

    Typical use:
        engine = TopologySyncEngine(config, panel=PanelSession(channel))
        await engine.open("lab.clab.yml")
        ...
        await engine.detector.on_saved("lab.clab.yml")
        await engine.switch_mode("view")
        await engine.dispose()
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        *,
        panel: Optional[PanelSession] = None,
        probe: Optional[DeploymentStateProbe] = None,
        workspace: Optional[WorkspaceState] = None,
        adapter: Optional[TopologyAdapter] = None,
        artifact_writer: Optional[ArtifactWriter] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config or SyncConfig()
        self.guard = SyncGuard()
        self.reader = TopologySourceReader(self.guard, self.config)
        self.adapter = adapter or TopologyAdapter(self.config.topology_defaults)
        self.probe = probe or DeploymentStateProbe(InspectCommandSource(self.config))
        self.workspace = workspace or MemoryWorkspaceState()
        self.panel = panel
        self.event_bus = event_bus
        if artifact_writer is None and self.config.artifacts_dir is not None:
            artifact_writer = ArtifactWriter(self.config.artifacts_dir)
        self.artifacts = artifact_writer
        self.link_states = LinkStateRefresher(self.adapter)

        self.view_cache = ViewModeCache()
        self.detector = ChangeDetector(
            self.reader,
            self.guard,
            cached_text=self.cached_text,
            request_update=self.request_update,
            poll_interval_s=self.config.watch_poll_interval_s,
            event_bus=event_bus,
            lab_name=lambda: self.lab_name,
        )
        self.reader.add_write_listener(self.detector.mark_seen)

        self.path: Optional[Path] = None
        self.lab_name: str = ""
        self.view_mode: bool = False
        self.deployment_state: DeploymentState = DeploymentState.UNKNOWN
        self.last_graph: Optional[GraphModel] = None
        self._last_snapshot: DeploymentSnapshot = {}
        self._last_error: Optional[TopoSyncError] = None
        self._acked_text: Optional[str] = None
        self._background: Set[asyncio.Task] = set()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def mode(self) -> PanelMode:
        return PanelMode.from_view_flag(self.view_mode)

    @property
    def annotations(self) -> Optional[AnnotationStore]:
        return AnnotationStore(self.path) if self.path is not None else None

    async def cached_text(self) -> Optional[str]:
        """Last processed topology text, used for content de-duplication."""
        if not self.lab_name:
            return None
        return await self.workspace.get(self.config.cache_key(self.lab_name))

    def _rename_lab(self, name: str) -> None:
        logger.info(f"Lab '{self.lab_name}' renamed to '{name}'")
        self.lab_name = name
        if self.panel is not None:
            self.panel.lab_name = name

    async def _emit(self, event: SyncEvent) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(event)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def open(
        self,
        path: Union[str, Path],
        lab_name: Optional[str] = None,
        view_mode: bool = False,
    ) -> bool:
        """
        Bind the engine to a topology file and run the initial load.

        The deployment state check runs concurrently with the initial pass.
        Failures during an edit-mode initial load propagate; in view mode
        they are logged and the minimal fallback is shown.

        Returns:
            True if the initial pass succeeded
        """
        self.path = Path(path)
        self.lab_name = lab_name or lab_name_from_path(self.path)
        self.view_mode = view_mode
        if self.panel is not None:
            self.panel.lab_name = self.lab_name
            self.panel.mode = self.mode
        logger.info(
            f"Opening {self.path} as lab '{self.lab_name}' in {self.mode.value} mode",
            extra={"lab_name": self.lab_name},
        )

        state_task = asyncio.create_task(self.check_deployment_state())
        try:
            ok = await self._drain(QueuedUpdate(), initial=True)
        finally:
            self.deployment_state = await state_task

        self.detector.watch(self.path)
        self.detector.start()
        return ok

    async def create_template(self, path: Union[str, Path]) -> Path:
        """Write the default topology to a new `.clab.yml` file and return its path."""
        return await self.reader.create_template(path)

    async def dispose(self) -> None:
        """Stop change detection, wait for background writes and drop cached state."""
        await self.detector.stop()
        if self._background:
            await asyncio.wait(set(self._background))
        self.view_cache.clear()
        self.guard.reset()
        if self.panel is not None:
            await self.panel.close()
        logger.info(f"Disposed session for lab '{self.lab_name}'")

    # =========================================================================
    # Update requests
    # =========================================================================

    async def request_update(
        self, save_ack: bool = False, refresh_panel: bool = True, force: bool = False
    ) -> bool:
        """
        Request an update pass.

        Args:
            save_ack: Acknowledge a save to the panel once the pass completes
            refresh_panel: Push the new graph to the panel (False = data only)
            force: Skip content de-duplication

        Returns:
            True if the pass ran successfully or was coalesced into the
            queue; False if it was rejected or failed
        """
        request = QueuedUpdate(save_ack=save_ack, refresh_panel=refresh_panel, force=force)

        if not self.lab_name:
            logger.warning("Update requested before a lab was opened")
            return False

        if self.guard.is_switching:
            logger.debug("Update rejected: mode switch in progress")
            await self._emit(UpdateRejectedEvent(self.lab_name, save_ack=save_ack))
            return False

        if self.guard.is_updating:
            slot = self.guard.enqueue(request)
            logger.debug(f"Update coalesced into queue slot: {slot}")
            await self._emit(UpdateQueuedEvent(
                self.lab_name, save_ack=slot.save_ack, refresh_panel=slot.refresh_panel
            ))
            return True

        return await self._drain(request)

    async def update(self, skip_panel_refresh: bool = False) -> bool:
        return await self.request_update(refresh_panel=not skip_panel_refresh)

    async def force_update(self) -> bool:
        """Regenerate even if the file content did not change (e.g. after external commands)."""
        return await self.request_update(force=True)

    async def _drain(self, first: QueuedUpdate, initial: bool = False) -> bool:
        """Run passes until the queue slot is empty."""
        self.guard.begin_update()
        initial_error: Optional[TopoSyncError] = None
        ok = False
        try:
            pending: Optional[QueuedUpdate] = first
            while pending is not None:
                ok = await self._guarded_pass(pending, initial)
                if not ok and initial and not self.view_mode and initial_error is None:
                    initial_error = self._last_error
                initial = False
                pending = self.guard.take_queued()
        finally:
            self.guard.end_update()

        if initial_error is not None:
            raise initial_error
        return ok

    async def _guarded_pass(self, request: QueuedUpdate, initial: bool = False) -> bool:
        """Run one pass, reporting failures according to the current mode."""
        self._last_error = None
        try:
            return await self._run_pass(request, initial=initial)
        except TopoSyncError as e:
            self._last_error = e
            traceback = isinstance(e, TopologyConvertError)
            await self._emit(UpdatePassEvent(
                self.lab_name, status="failed", initial=initial,
                view_mode=self.view_mode, save_ack=request.save_ack, reason=str(e),
            ))
            if self.view_mode:
                logger.warning(f"Update failed in view mode, keeping previous graph: {e}", exc_info=traceback)
            elif initial:
                logger.error(f"Initial load of {self.path} failed: {e}", exc_info=traceback)
            else:
                logger.error(f"Update of {self.path} failed: {e}", exc_info=traceback)
                if self.panel is not None:
                    await self.panel.show_error(e.user_message)
            return False

    async def _resolve_text(self) -> str:
        """Text for this pass, following the read rules of the current mode."""
        if self.view_mode:
            text = await self.reader.read_or_none(self.path)
            if text is None:
                logger.warning(f"Using minimal topology for unreadable {self.path}")
                return minimal_topology(self.lab_name)
            return text

        text = await self.reader.read(self.path)
        text = await self.reader.ensure_content(self.path, text, self.lab_name)
        if self.guard.consume_skip_validation():
            logger.debug("Skipping validation of freshly created template")
            return text
        result = self.reader.validate(text)
        if not result.valid:
            raise TopologyValidationError(
                f"{self.path} is not a valid topology",
                reason=result.reason,
                lab_name=self.lab_name,
                path=str(self.path),
            )
        return text

    async def _load_annotations(self) -> AnnotationSet:
        store = self.annotations
        return await store.load() if store is not None else AnnotationSet()

    async def _deployment_snapshot(self) -> DeploymentSnapshot:
        snapshot = await self.probe.snapshot(self.lab_name)
        if snapshot is None:
            logger.debug("Using last known deployment data")
            return self._last_snapshot
        self._last_snapshot = snapshot
        return snapshot

    async def _run_pass(self, request: QueuedUpdate, initial: bool = False) -> bool:
        """One update pass. Raises TopoSyncError on failure."""
        await self._emit(UpdatePassEvent(
            self.lab_name, status="started", initial=initial,
            view_mode=self.view_mode, save_ack=request.save_ack,
        ))

        snapshot = await self._deployment_snapshot() if self.view_mode else None
        text = await self._resolve_text()

        if not initial and not self.view_mode and not request.force:
            if text == await self.cached_text():
                logger.debug(f"Content of {self.path} unchanged, skipping update")
                await self._emit(UpdatePassEvent(
                    self.lab_name, status="skipped", view_mode=self.view_mode,
                    save_ack=request.save_ack, reason="unchanged",
                ))
                if request.save_ack and text != self._acked_text:
                    await self._acknowledge_save(text)
                return True

        parsed = parse_topology(text, self.path)
        annotations = await self._load_annotations()
        graph = self.adapter.convert_parsed(parsed, snapshot, annotations)

        if self.view_mode:
            self.view_cache.store(graph, parsed, self.reader.mtime(self.path))
        else:
            self.view_cache.clear()

        await self._write_artifacts(graph, text, initial)

        self.last_graph = graph
        if request.refresh_panel and self.panel is not None:
            await self.panel.push_snapshot(graph)

        await self.workspace.update(self.config.cache_key(self.lab_name), text)

        if request.save_ack:
            await self._acknowledge_save(text)

        await self._emit(UpdatePassEvent(
            self.lab_name, status="completed", initial=initial,
            view_mode=self.view_mode, save_ack=request.save_ack,
        ))
        return True

    async def _acknowledge_save(self, text: str) -> None:
        """Send one yaml-saved per distinct saved content."""
        self._acked_text = text
        if self.panel is not None:
            await self.panel.notify_saved()

    async def _write_artifacts(self, graph: GraphModel, text: str, initial: bool) -> None:
        if self.artifacts is None:
            return
        write = self.artifacts.write(
            self.lab_name, graph, text,
            topology_path=self.path,
            deployment_state=self.deployment_state.value,
        )
        if initial:
            task = asyncio.create_task(write)
            self._background.add(task)
            task.add_done_callback(self._on_artifacts_written)
            return
        try:
            await write
        except ArtifactWriteError as e:
            if not self.view_mode:
                raise
            logger.warning(f"Artifact write failed in view mode: {e}")

    def _on_artifacts_written(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background artifact write for lab '{self.lab_name}' failed: {error}")

    # =========================================================================
    # Mode switching
    # =========================================================================

    def _mode_params(self) -> Dict[str, Any]:
        path = str(self.path) if self.path else ""
        defaults = self.config.topology_defaults
        return {
            "viewerParams": {
                "labName": self.lab_name,
                "currentLabPath": path,
            },
            "editorParams": {
                "labName": self.lab_name,
                "currentLabPath": path,
                "defaultKind": defaults.node_kind,
                "defaultType": defaults.node_type,
                "defaultImage": defaults.node_image,
            },
        }

    def _target_view_mode(self, mode: str) -> bool:
        if mode == "toggle":
            return not self.view_mode
        if mode in ("view", "viewer"):
            return True
        if mode in ("edit", "editor"):
            return False
        raise ValueError(f"Unknown mode '{mode}', expected toggle, view or edit")

    async def switch_mode(self, mode: str = "toggle") -> Dict[str, str]:
        """
        Switch between edit and view mode.

        Waits for a running update drain to finish first. Inside the switch
        the deployment state is re-checked, the graph is refreshed without
        re-rendering the panel, and the panel is told about the new mode.

        Returns:
            {"mode": "view" | "edit", "deploymentState": ...}

        Raises:
            ModeSwitchInProgressError: If another switch is in progress
            TopoSyncError: If the data refresh failed
        """
        if self.path is None:
            raise TopoSyncError("No topology file is open", error_code="NO_TOPOLOGY_OPEN")
        target = self._target_view_mode(mode)

        while not self.guard.is_idle:
            if self.guard.is_switching:
                await self._emit(ModeSwitchEvent(self.lab_name, status="rejected", mode=mode))
                raise ModeSwitchInProgressError(lab_name=self.lab_name)
            await self.guard.wait_idle()

        self.guard.begin_mode_switch()
        await self._emit(ModeSwitchEvent(self.lab_name, status="started", mode=mode))
        try:
            try:
                self.view_mode = target
                if not self.view_mode:
                    self.view_cache.clear()
                logger.info(f"Switching lab '{self.lab_name}' to {self.mode.value} mode")

                self.deployment_state = await self.check_deployment_state()
                if not await self._guarded_pass(QueuedUpdate(refresh_panel=False)):
                    raise TopoSyncError(MODE_SWITCH_REFRESH_FAILED, lab_name=self.lab_name)

                if self.panel is not None:
                    await self.panel.notify_mode_changed(
                        self.mode, self.deployment_state.value, self._mode_params()
                    )
                await self._emit(ModeSwitchEvent(
                    self.lab_name, status="completed", mode=self.mode.value,
                    deployment_state=self.deployment_state.value,
                ))
                return {"mode": self.mode.value, "deploymentState": self.deployment_state.value}
            except TopoSyncError as e:
                await self._emit(ModeSwitchEvent(
                    self.lab_name, status="failed", mode=mode, error=str(e),
                ))
                raise
            finally:
                await asyncio.sleep(self.config.mode_switch_settle_s)
        finally:
            self.guard.end_mode_switch()

    # =========================================================================
    # Deployment
    # =========================================================================

    async def check_deployment_state(self) -> DeploymentState:
        """Deployment state of the lab; UNKNOWN when the probe fails."""
        if not self.lab_name:
            return DeploymentState.UNKNOWN
        state = await self.probe.check(self.lab_name, self.path, on_rename=self._rename_lab)
        logger.debug(f"Deployment state of '{self.lab_name}': {state.value}")
        return state

    async def refresh_after_lifecycle(self, state: Union[DeploymentState, str]) -> bool:
        """
        Refresh after a deploy/destroy/redeploy finished outside the engine.

        A deployed lab is shown in view mode, anything else in edit mode.
        Graph data is refreshed without re-rendering the panel.
        """
        state = DeploymentState(state)
        while not self.guard.is_idle:
            await self.guard.wait_idle()
        self.deployment_state = state
        self.view_mode = state is DeploymentState.DEPLOYED

        ok = await self.request_update(refresh_panel=False, force=True)
        if self.panel is not None:
            await self.panel.notify_mode_changed(self.mode, state.value, self._mode_params())
        return ok

    async def post_lifecycle_status(self, kind: str, status: str, error: Optional[str] = None) -> None:
        if self.panel is not None:
            await self.panel.notify_lifecycle_status(kind, status, error)

    async def _ensure_view_cache(self) -> Optional[ViewModeCache]:
        mtime = self.reader.mtime(self.path)
        if not self.view_cache.is_stale(mtime):
            return self.view_cache

        text = await self.reader.read_or_none(self.path)
        if text is None:
            return None
        try:
            parsed = parse_topology(text, self.path)
        except TopoSyncError as e:
            logger.warning(f"Cannot rebuild view cache: {e}")
            return None
        graph = self.adapter.convert_parsed(parsed, self._last_snapshot, await self._load_annotations())
        self.view_cache.store(graph, parsed, mtime)
        return self.view_cache

    async def refresh_link_states(self, snapshot: Optional[DeploymentSnapshot] = None) -> int:
        """
        Push live link state changes to the panel (view mode only).

        Returns:
            Number of edge updates pushed
        """
        if not self.view_mode or self.panel is None or self.path is None:
            return 0
        if not self.guard.is_idle:
            logger.debug("Skipping link state refresh while busy")
            return 0

        if snapshot is None:
            snapshot = await self.probe.snapshot(self.lab_name)
        if not snapshot or self.lab_name not in snapshot:
            return 0
        self._last_snapshot = snapshot

        cache = await self._ensure_view_cache()
        if cache is None or cache.parsed is None:
            return 0

        updates = self.link_states.edge_updates(cache.parsed, snapshot, cache.graph)
        if not updates:
            return 0
        self.link_states.apply(cache.graph, updates)
        await self.panel.push_edge_updates(updates)
        return len(updates)
