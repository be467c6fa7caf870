from dataclasses import dataclass, fields
from typing import Optional

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

ROOT_DISPLAY = '(root dir)'

# --- Rich Theme for sync progress ---
SYNC_THEME = Theme({
    "uploaded": "yellow",
    "removed": "red",
    "synced": "cyan",
    "created": "green",
    "skipped": "dim",
    "ignored": "dim",
    "error": "bold red",
    "header": "green",
    "label": "grey50",
    "repr.str": "none",
})

# Labels are right-aligned so that the paths line up
LABEL_WIDTH = 19


@dataclass
class SyncSummary:
    """Counters accumulated over one sync run."""
    uploaded_files: int = 0
    uploaded_dirs: int = 0
    created_dirs: int = 0
    removed_files: int = 0
    removed_dirs: int = 0
    skipped: int = 0
    ignored: int = 0
    errors: int = 0
    synced_dirs: int = 0

    @property
    def changed(self) -> bool:
        return any((self.uploaded_files, self.uploaded_dirs, self.created_dirs,
                    self.removed_files, self.removed_dirs))

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


def display_path(relative_path: str) -> str:
    return relative_path or ROOT_DISPLAY


def render_summary(summary: SyncSummary) -> str:
    """Formats the closing summary line (rich markup)."""
    s = summary
    return (
        f"[synced]Done.[/synced] uploaded {s.uploaded_files} file(s), {s.uploaded_dirs} dir(s); "
        f"created {s.created_dirs} dir(s); removed {s.removed_files} file(s), {s.removed_dirs} dir(s); "
        f"skipped {s.skipped}; ignored {s.ignored}; errors {s.errors}"
    )


class SyncReporter:
    """Writes sync progress lines to a rich console and counts outcomes."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        self.console = console or Console(theme=SYNC_THEME, highlight=False)
        self.quiet = quiet
        self.summary = SyncSummary()

    def _line(self, label: str, style: str, relative_path: str) -> None:
        if self.quiet:
            return
        text = Text(f"{label} : ".rjust(LABEL_WIDTH + 3), style=style)
        text.append(display_path(relative_path))
        self.console.print(text)

    def header(self, host: str, local_root: str, remote_root: str) -> None:
        self.console.print(Text(f"* Deploying to host {host}", style="header"))
        self.console.print(Text("* local dir  = ", style="label") + Text(local_root))
        self.console.print(Text("* remote dir = ", style="label") + Text(remote_root))
        self.console.print()

    def file_uploaded(self, relative_path: str) -> None:
        self.summary.uploaded_files += 1
        self._line("file uploaded", "uploaded", relative_path)

    def directory_uploaded(self, relative_path: str) -> None:
        self.summary.uploaded_dirs += 1
        self._line("directory uploaded", "uploaded", relative_path)

    def directory_created(self, relative_path: str) -> None:
        self.summary.created_dirs += 1
        self._line("directory created", "created", relative_path)

    def remote_file_removed(self, relative_path: str) -> None:
        self.summary.removed_files += 1
        self._line("remote file removed", "removed", relative_path)

    def remote_dir_removed(self, relative_path: str) -> None:
        self.summary.removed_dirs += 1
        self._line("remote dir removed", "removed", relative_path)

    def skipped(self, relative_path: str) -> None:
        self.summary.skipped += 1
        self._line("skipped", "skipped", relative_path)

    def ignored(self, relative_path: str) -> None:
        self.summary.ignored += 1
        self._line("ignored", "ignored", relative_path)

    def entry_error(self, relative_path: str) -> None:
        self.summary.errors += 1
        self._line("error", "error", relative_path)

    def sync_completed(self, relative_path: str) -> None:
        self.summary.synced_dirs += 1
        self._line("sync completed", "synced", relative_path)

    def dry_run_entry(self, relative_path: str, local_status: str, remote_status: str,
                      method: str, remove_remote: bool, skip: bool, has_error: bool) -> None:
        """Prints the derived plan for one entry without touching anything."""
        if skip:
            self.summary.skipped += 1
        if has_error:
            self.summary.errors += 1
        if self.quiet:
            return
        text = Text(f"# {display_path(relative_path)}", style="bold")
        self.console.print(text)
        self.console.print(Text(f"    local  : {local_status}"))
        self.console.print(Text(f"    remote : {remote_status}"))
        actions = [method]
        if remove_remote:
            actions.insert(0, "remove remote")
        if skip:
            actions.append("(skip)")
        if has_error:
            actions.append("(error)")
        self.console.print(Text(f"    action : {' -> '.join(actions)}", style="synced"))
        self.console.print()

    def print_summary(self) -> None:
        self.console.print(render_summary(self.summary))
