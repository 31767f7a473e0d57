"""Bootstrap supervisor.

Prepares the environment, runs the API server as a child process and tears
everything down again. The lifecycle is a small state machine:

    INITIALIZING -> PROVISIONING -> STARTING -> RUNNING -> SHUTTING_DOWN -> EXITED

Three things end the RUNNING state: the server exits, the supervisor receives
SIGINT/SIGTERM, or an error escapes the supervisor's own flow. All of them
call ``shutdown``, which runs its cleanup exactly once, undoing startup in
reverse order.
"""

import asyncio
import logging
import signal
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

import tokendesk
from tokendesk.bootstrap.commands import PYTHON, build_env, run_command
from tokendesk.bootstrap.errors import ConfigurationError, ReadinessTimeoutError
from tokendesk.bootstrap.fork import ForkHandle, ForkManager
from tokendesk.bootstrap.options import BootstrapOptions, ChainEnvironment
from tokendesk.bootstrap.provisioner import DatabaseProvisioner, ProvisioningOutcome, has_versioned_migrations
from tokendesk.bootstrap.readiness import http_ok, rpc_chain_id, wait_until_ready
from tokendesk.bootstrap.schema_switch import SchemaChange, SchemaSwitcher
from tokendesk.bootstrap.seed import maybe_seed
from tokendesk.config import Settings, get_settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
SIGNAL_EXIT_CODES = {
    signal.SIGINT: 130,
    signal.SIGTERM: 143,
}
SERVER_STOP_TIMEOUT_SECONDS = 10.0


class State(str, Enum):
    """Supervisor lifecycle states."""

    INITIALIZING = "initializing"
    PROVISIONING = "provisioning"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


def exit_code_for(returncode: Optional[int]) -> int:
    """Supervisor exit code for a server that exited with ``returncode``."""
    if returncode is None:
        return EXIT_OK
    if returncode < 0:
        # Killed by a signal
        return 128 + (-returncode)
    return returncode


class Supervisor:
    """Owns the server process, the optional fork and the schema switch."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        runner: Callable[..., Awaitable[object]] = run_command,
        fork_manager: Optional[ForkManager] = None,
        spawn_server: Optional[Callable[[Sequence[str], Path, dict], Awaitable[object]]] = None,
        wait_ready: Callable[..., Awaitable[None]] = wait_until_ready,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self._runner = runner
        self._fork_manager = fork_manager
        self._spawn_server = spawn_server or self._spawn_subprocess
        self._wait_ready = wait_ready
        self._sleep = sleep

        self.state = State.INITIALIZING
        self.options: Optional[BootstrapOptions] = None
        self.chain = ChainEnvironment()
        self.switcher: Optional[SchemaSwitcher] = None
        self.schema_change = SchemaChange(changed=False)
        self.ephemeral_files: list[Path] = []
        self.provisioning: Optional[ProvisioningOutcome] = None
        self.fork: Optional[ForkHandle] = None
        self.server = None
        self.exit_code: Optional[int] = None

        self._shutting_down = False
        self._stopped = asyncio.Event()
        self._startup_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def initialize(self) -> BootstrapOptions:
        """Parse and validate configuration.

        Raises:
            ConfigurationError: before any side effect has happened.
        """
        self.state = State.INITIALIZING
        options = BootstrapOptions.from_settings(self.settings)
        self.options = options
        self.chain = options.chain
        self.switcher = SchemaSwitcher(options.schema_path)
        self.ephemeral_files = options.ephemeral_database_files()

        logger.info(
            f"Bootstrapping tokendesk ({options.mode.value}, provider={options.provider.value})"
        )
        return options

    async def provision(self) -> ProvisioningOutcome:
        """Switch the schema document and apply it to the database."""
        self.state = State.PROVISIONING
        options = self.options

        self.schema_change = self.switcher.reconcile(options.provider)

        provisioner = DatabaseProvisioner(options, runner=self._runner, sleep=self._sleep)
        self.provisioning = await provisioner.provision(
            options.provider, has_versioned_migrations(options.migrations_dir)
        )
        logger.info(
            f"Database ready via {self.provisioning.method} "
            f"(attempt {self.provisioning.attempts})"
        )
        return self.provisioning

    async def start(self) -> None:
        """Start the optional fork, then the server."""
        self.state = State.STARTING
        options = self.options

        if options.enable_fork:
            await self._start_fork()

        argv = self.server_argv()
        env = build_env({**options.child_env(), **self.chain.as_env()})
        self.server = await self._spawn_server(argv, options.project_dir, env)
        logger.info(f"API server started (pid {getattr(self.server, 'pid', '?')}) at {options.api_base_url}")

        watcher = asyncio.create_task(self._watch_server())
        self._background.add(watcher)
        watcher.add_done_callback(self._background.discard)

        self.state = State.RUNNING

    async def _start_fork(self) -> None:
        manager = self._fork_manager or ForkManager(
            command=self.options.fork_command,
            port=self.options.fork_port,
            upstream_rpc_url=self.options.upstream_rpc_url,
        )
        handle = await manager.start()
        if handle is None:
            logger.warning("Continuing without a local fork")
            return
        # Published before the wait so a shutdown during it still stops the fork
        self.fork = handle

        self.chain = ChainEnvironment(
            rpc_url=handle.rpc_url,
            signing_key=handle.signing_key or self.chain.signing_key,
        )
        try:
            await self._wait_ready(
                rpc_chain_id(handle.rpc_url), self.options.ready_timeout, name="fork RPC"
            )
        except ReadinessTimeoutError as e:
            logger.error(f"Failed to wait for RPC ready: {e}")

    def server_argv(self) -> list[str]:
        options = self.options
        argv = [
            PYTHON, "-m", "uvicorn", "tokendesk.api.app:app",
            "--host", options.api_host,
            "--port", str(options.api_port),
        ]
        if options.use_reload:
            argv += ["--reload", "--reload-dir", str(Path(tokendesk.__file__).parent)]
        return argv

    @staticmethod
    async def _spawn_subprocess(argv: Sequence[str], cwd: Path, env: dict):
        return await asyncio.create_subprocess_exec(*argv, cwd=str(cwd), env=env)

    async def _seed_when_ready(self) -> None:
        """Fire the seed job once the API answers; never fails startup."""
        options = self.options
        if options.auto_seed and self.chain.has_rpc:
            try:
                await self._wait_ready(http_ok(options.health_url), options.ready_timeout, name="API")
            except ReadinessTimeoutError as e:
                logger.warning(f"Skipping seed: {e}")
                return

        await maybe_seed(
            options.auto_seed,
            self.chain.has_rpc,
            cwd=options.project_dir,
            env={**options.child_env(), **self.chain.as_env()},
            runner=self._runner,
        )

    async def _startup(self) -> None:
        await self.provision()
        await self.start()
        await self._seed_when_ready()

    async def _watch_server(self) -> None:
        returncode = await self.server.wait()
        if self._shutting_down:
            return
        logger.info(f"API server exited with code {returncode}")
        await self.shutdown(exit_code_for(returncode))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self, code: int = EXIT_OK) -> None:
        """Undo startup in reverse order. Only the first call does anything."""
        if self._shutting_down:
            return
        self._shutting_down = True
        self.state = State.SHUTTING_DOWN
        self.exit_code = code
        logger.info(f"Shutting down (exit code {code})")

        startup = self._startup_task
        if startup is not None and not startup.done() and startup is not asyncio.current_task():
            startup.cancel()
            await asyncio.gather(startup, return_exceptions=True)

        try:
            await self._stop_server()

            if self.fork is not None:
                await self.fork.close()

            self._remove_ephemeral_files()

            if self.switcher is not None:
                self.switcher.restore(self.schema_change.changed, self.schema_change.original)

            await self._regenerate_client()
        finally:
            self.state = State.EXITED
            self._stopped.set()

    async def _stop_server(self) -> None:
        server = self.server
        if server is None or server.returncode is not None:
            return
        try:
            server.terminate()
            try:
                await asyncio.wait_for(server.wait(), timeout=SERVER_STOP_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("API server did not stop in time; killing it")
                server.kill()
                await server.wait()
        except ProcessLookupError:
            pass
        except Exception as e:
            logger.error(f"Failed to stop API server: {e}")

    def _remove_ephemeral_files(self) -> None:
        for path in self.ephemeral_files:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Could not remove {path}: {e}")

    async def _regenerate_client(self) -> None:
        """Regenerate the binding for the restored schema; best effort."""
        if self.options is None:
            return
        provisioner = DatabaseProvisioner(self.options, runner=self._runner, sleep=self._sleep)
        try:
            await provisioner.generate_client()
        except Exception as e:
            logger.error(f"Warning: client generation after restore failed: {e}")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def request_shutdown(self, code: int) -> None:
        """Schedule ``shutdown`` from a synchronous callback."""
        task = asyncio.ensure_future(self.shutdown(code))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}")
        self.request_shutdown(SIGNAL_EXIT_CODES.get(sig, EXIT_ERROR))

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        loop.default_exception_handler(context)
        self.request_shutdown(EXIT_ERROR)

    def _install_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SIGNAL_EXIT_CODES:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                pass
        loop.set_exception_handler(self._on_loop_exception)

    def _remove_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SIGNAL_EXIT_CODES:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
        loop.set_exception_handler(None)

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Run the full lifecycle and return the process exit code."""
        try:
            self.initialize()
        except ConfigurationError as e:
            logger.error(str(e))
            self.state = State.EXITED
            self.exit_code = EXIT_ERROR
            return EXIT_ERROR

        loop = asyncio.get_running_loop()
        self._install_handlers(loop)
        try:
            self._startup_task = asyncio.create_task(self._startup())
            try:
                await self._startup_task
            except asyncio.CancelledError:
                # Cancelled by a shutdown already in progress
                if not self._shutting_down:
                    raise
            except Exception as e:
                logger.exception(f"Startup failed: {e}")
                await self.shutdown(EXIT_ERROR)

            await self._stopped.wait()
        finally:
            self._remove_handlers(loop)

        return self.exit_code if self.exit_code is not None else EXIT_OK
