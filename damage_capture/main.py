"""Main entry point for the baggage damage capture station."""
import os
import signal
import sys
import logging

from damage_capture.config.settings import NetworkConfig, PathConfig, SessionConfig
from damage_capture.core.expiry_watcher import ExpiryWatcher
from damage_capture.core.feedback import FeedbackSignal
from damage_capture.core.models import SessionMetadata
from damage_capture.core.session_coordinator import SessionCoordinator
from damage_capture.core.shift_classifier import Shift
from damage_capture.network.submission_client import SubmissionClient
from damage_capture.storage.backends import JsonFileStore
from damage_capture.storage.session_store import SessionStore
from damage_capture.utils.logging_config import setup_logging

HELP = """Scan a tag, or type a command:
  :manual CODE               add a typed 6-digit code
  :toggle CODE A|B|C         toggle a damage category
  :sig CODE                  toggle passenger signature
  :obs CODE TEXT             save an observation
  :del CODE                  delete a bag
  :list [QUERY]              list bags, optionally filtered
  :stats                     counts and connection state
  :ping                      probe the endpoint
  :finalize OPERATOR [AIRLINE] [SHIFT]
  :clear                     delete every bag
  :quit"""

class DamageCaptureSystem:
    def __init__(self):
        """Initialize the damage capture system."""
        self.logger = setup_logging()
        os.makedirs(PathConfig.DATA_DIR, exist_ok=True)

        self.store = SessionStore(JsonFileStore(PathConfig.DATA_DIR))
        self.client = SubmissionClient(
            NetworkConfig.SERVER_URL,
            max_retries=NetworkConfig.MAX_RETRIES,
            retry_backoff_unit=NetworkConfig.RETRY_BACKOFF_UNIT,
            send_timeout=NetworkConfig.SEND_TIMEOUT,
            probe_timeout=NetworkConfig.PROBE_TIMEOUT,
            source_tag=NetworkConfig.SOURCE_TAG
        )
        self.coordinator = SessionCoordinator(store=self.store, client=self.client)
        self.coordinator.subscribe_feedback(self._show_feedback)
        self.expiry_watcher = ExpiryWatcher(
            self.coordinator.expire,
            expiry_hour=SessionConfig.EXPIRY_HOUR,
            expiry_minute=SessionConfig.EXPIRY_MINUTE,
            poll_interval=SessionConfig.POLL_INTERVAL
        )
        self.running = False

    def _show_feedback(self, signal_type: FeedbackSignal, message: str):
        print(f"[{signal_type.value}] {message}", flush=True)

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals."""
        self.logger.info("Shutdown signal received")
        self.stop()
        sys.exit(0)

    def _on_finalized(self, outcome):
        for warning in outcome.warnings:
            print(f"[warning] {warning}", flush=True)
        print(f"[{outcome.status.value}] {outcome.message}", flush=True)

    def _print_records(self, query=""):
        records = self.coordinator.ledger.search(query)
        if not records:
            print(self.coordinator.last_summary or "No records", flush=True)
            return
        for record in records:
            letters = "".join(c.name for c in sorted(record.categories, key=lambda c: c.name))
            signature = "signed" if record.has_signature else "unsigned"
            print(f"{record.id}  {record.captured_at:%H:%M}  {record.shift.value}  "
                  f"[{letters or '-'}]  {signature}  {record.observation}", flush=True)

    def handle_line(self, line: str):
        """Dispatch one line of input; returns False to stop."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith(':'):
            self.coordinator.scan(line)
            return True

        command, _, rest = line[1:].partition(' ')
        args = rest.split()
        coordinator = self.coordinator

        if command == 'quit':
            return False
        elif command == 'manual' and args:
            coordinator.enter_manual(args[0])
        elif command == 'toggle' and len(args) == 2:
            print(coordinator.toggle_category(args[0], args[1]).message, flush=True)
        elif command == 'sig' and args:
            print(coordinator.toggle_signature(args[0]).message, flush=True)
        elif command == 'obs' and args:
            text = rest.strip()[len(args[0]):].strip()
            print(coordinator.save_observation(args[0], text).message, flush=True)
        elif command == 'del' and args:
            print(coordinator.delete(args[0]).message, flush=True)
        elif command == 'list':
            self._print_records(rest)
        elif command == 'stats':
            print(coordinator.stats(), flush=True)
            print(self.client.get_health_status(), flush=True)
        elif command == 'ping':
            print(self.client.ping(), flush=True)
        elif command == 'clear':
            print(coordinator.clear_all().message, flush=True)
        elif command == 'finalize' and args:
            previous = self.store.load_metadata() or SessionMetadata()
            try:
                shift = Shift.parse(args[2]) if len(args) > 2 else None
            except ValueError as e:
                print(e, flush=True)
                return True
            metadata = SessionMetadata(
                operator=args[0],
                shift=shift,
                airline=args[1] if len(args) > 1 else (previous.airline or SessionConfig.DEFAULT_AIRLINE)
            )
            coordinator.finalize_async(metadata, on_done=self._on_finalized)
        else:
            print(HELP, flush=True)
        return True

    def start(self):
        """Start the capture station."""
        self.running = True
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

        restored = self.coordinator.restore()
        self.expiry_watcher.start()
        if not self.client.is_configured():
            self.logger.warning("DAMAGE_SERVER_URL is not set; finalize will fail until it is")
        self.logger.info(f"System started - {restored} records restored, data in {PathConfig.DATA_DIR}")

    def run(self, stream=sys.stdin):
        print(HELP, flush=True)
        for line in stream:
            if not self.handle_line(line):
                break

    def stop(self):
        """Stop the capture station."""
        if not self.running:
            return
        self.logger.info("Stopping system...")
        self.running = False
        self.expiry_watcher.stop()
        self.logger.info("System stopped")

def main():
    """Main entry point for the application."""
    system = None
    try:
        system = DamageCaptureSystem()
        system.start()
        system.run()
    except Exception as e:
        logging.error(f"Critical error: {e}")
        sys.exit(1)
    finally:
        if system:
            system.stop()

if __name__ == "__main__":
    main()
