# src/tenantprov/app/output.py
from __future__ import annotations
from typing import List, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from tenantprov.app.provisioner import ProvisionResult


class ConsoleLogger:
    """Tagged console lines. HTTP tracing only shows up in verbose mode."""
    def __init__(self, tag: str = "provision", verbose: bool = False):
        self.tag = tag
        self.verbose = verbose

    def debug(self, msg: str) -> None:
        if self.verbose:
            print(f"[{self.tag}] {msg}")

    def info(self, msg: str) -> None:
        print(f"[{self.tag}] {msg}")

    def warning(self, msg: str) -> None:
        print(f"[{self.tag}] WARNING: {msg}")

    def error(self, msg: str) -> None:
        print(f"[{self.tag}] ERROR: {msg}")


class OutputSink(Protocol):
    def emit(self, result: "ProvisionResult") -> None: ...


class ConsoleSink:
    def __init__(self, write=print):
        self._write = write

    def emit(self, result: "ProvisionResult") -> None:
        cred = result.credential
        lines = [
            "=" * 60,
            f"  Application (client) ID : {result.app_id}",
            f"  Object ID               : {result.object_id}",
            f"  Tenant ID               : {result.tenant_id}",
            f"  Client secret           : {cred.secret_text}",
            f"  Secret valid            : {cred.start_date_time:%Y-%m-%d} -> {cred.end_date_time:%Y-%m-%d}",
            "=" * 60,
            "Store the client secret now. It cannot be retrieved again.",
        ]
        for line in lines:
            self._write(line)


class ClipboardSink:
    """Copies the secret with tkinter's clipboard on a hidden root window."""
    def __init__(self, logger=None):
        self._log = logger or ConsoleLogger("clipboard")

    def emit(self, result: "ProvisionResult") -> None:
        try:
            import tkinter as tk
        except ImportError as ex:
            self._log.warning(f"clipboard unavailable ({ex}); copy the secret from the console output")
            return

        try:
            root = tk.Tk()
        except tk.TclError as ex:
            # headless session: the secret is already on the console
            self._log.warning(f"clipboard unavailable ({ex}); copy the secret from the console output")
            return
        try:
            root.withdraw()
            root.clipboard_clear()
            root.clipboard_append(result.credential.secret_text)
            root.update()  # hand ownership to the clipboard manager before destroy
        except tk.TclError as ex:
            self._log.warning(f"could not copy to clipboard ({ex}); copy the secret from the console output")
            return
        finally:
            root.destroy()
        self._log.info("Client secret copied to clipboard")


class MultiSink:
    def __init__(self, sinks: List[OutputSink]):
        self.sinks = list(sinks)

    def emit(self, result: "ProvisionResult") -> None:
        for sink in self.sinks:
            sink.emit(result)
