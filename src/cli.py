"""Command-line interface loop for the markdown Kanban board.

Tasks are referenced by the number shown in front of them; lanes by
name or id (case-insensitive). Every successful command is persisted by
the board itself, so the loop only renders, dispatches and reports.
"""
from pathlib import Path
from typing import Callable, List, Optional
import logging

from board import KanbanBoard
from lanes import LaneNameError, intake_lane, lane_id_for
from models import Lane
from storage import BackgroundWriter, Storage
from view import BoardView
from watcher import FileWatcher

logger = logging.getLogger(__name__)


# --- terminal control helpers ---
# ESC[3J (scrollback), ESC[H (home), ESC[2J (screen), ESC[H (home)
def _clear_screen() -> None:  # pragma: no cover
    print("\033[3J\033[H\033[2J\033[H", end="", flush=True)


def _enter_alt_screen() -> None:  # pragma: no cover
    print("\033[?1049h", end="", flush=True)


def _leave_alt_screen() -> None:  # pragma: no cover
    print("\033[?1049l", end="", flush=True)


HELP_LINES = [
    "Commands:",
    "  add <text...>                 Add a task to the intake lane (#tag $type @YYYYMMDD @@HH:MM allowed)",
    "  addto <lane> <text...>        Add a task to a specific lane",
    "  mv <n> <lane> [before <m>]    Move task n to a lane (optionally before task m)",
    "  order <n> <pos>               Move task n to position pos inside its lane",
    "  edit <n> <text...>            Replace the text of task n",
    "  tag <n> [tags...]             Set (or clear) the tags of task n",
    "  type <n> [type]               Set (or clear) the type of task n",
    "  due <n> [YYYYMMDD [HH:MM]]    Set (or clear) the deadline of task n",
    "  note <n>                      Create/attach a note file for task n",
    "  rm <n>                        Remove task n",
    "  lane add <after> <name...>    Add a lane after an existing lane",
    "  lane rename <lane> <name...>  Rename a custom lane",
    "  lane rm <lane>                Delete a custom lane (and its tasks)",
    "  lane mv <lane> <pos>          Move a lane to position pos",
    "  archive                       Export Done tasks to ARCHIVE_<stamp>.md and clear Done",
    "  wip [on|off]                  Toggle the one-task-in-Doing limit",
    "  reload                        Re-read todo.md from disk",
    "  help                          Show this help (press Enter to return)",
    "  exit                          Exit",
]


class CLI:
    def __init__(
        self,
        board: KanbanBoard,
        folder: Path,
        writer: Optional[BackgroundWriter] = None,
        watcher: Optional[FileWatcher] = None,
        alt_screen: bool = True,
        out: Optional[Callable[[str], None]] = None,
    ):
        self.board = board
        self.folder = Path(folder)
        self.view = BoardView(board)
        self.writer = writer
        self.watcher = watcher
        self.alt_screen = alt_screen
        self.out = out
        self.message: Optional[str] = None

    def run(self) -> None:  # pragma: no cover - interactive
        """Main REPL loop; board is cleared/redrawn each cycle."""
        exit_message: Optional[str] = None
        if self.alt_screen:
            _enter_alt_screen()
        try:
            while True:
                self._sync()
                _clear_screen()
                print(f"Kanban Board: {Storage.primary_path(self.folder)}"
                      f"{'  [WIP limit]' if self.board.wip_limit else ''}")
                self.view.display()
                if self.message:
                    print(f"\n{self.message}")
                    self.message = None
                line = input("\n: ").strip()
                if not line:
                    continue
                lower = line.lower()
                if lower == 'help':
                    _clear_screen()
                    print("\n".join(HELP_LINES))
                    input("\nPress Enter to return to the board...")
                    continue
                if lower == 'exit':
                    exit_message = "Goodbye."
                    break
                self.handle_command(line)
        except (KeyboardInterrupt, EOFError):
            exit_message = "Interrupted. Goodbye."
        finally:
            if self.watcher is not None:
                self.watcher.stop()
            if self.writer is not None:
                self.writer.close()
            if self.alt_screen:
                _leave_alt_screen()
            if exit_message:
                print(exit_message)

    def _sync(self) -> None:
        """Surface write failures and pick up external edits."""
        if self.writer is not None:
            error = self.writer.take_error()
            if error is not None:
                self.message = f"Saving todo.md failed: {error}"
        if self.watcher is not None and self.watcher.changed():
            try:
                self._reload()
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Reloading %s failed: %s", Storage.primary_path(self.folder), e)
                self.message = f"todo.md changed on disk but could not be read: {e}"
                return
            self.message = "todo.md changed on disk; board reloaded."

    def _reload(self) -> None:
        self.board.replace_state(Storage.load_board(self.folder))

    def _say(self, text: str) -> None:
        self.message = text
        if self.out is not None:
            self.out(text)

    # -------------------- reference resolution --------------------
    def _task_id(self, ref: str) -> Optional[str]:
        raw = ref.rstrip('.')
        if not raw.isdigit():
            return None
        number = int(raw)
        for n, _, task in self.board.numbered_tasks():
            if n == number:
                return task.id
        return None

    def _lane(self, ref: str) -> Optional[Lane]:
        lanes = self.board.state.lanes
        for lane in lanes:
            if lane.id == ref:
                return lane
        wanted = ref.lower()
        for lane in lanes:
            if lane.name.lower() == wanted or lane.id == lane_id_for(ref):
                return lane
        return None

    # -------------------- command dispatch --------------------
    def handle_command(self, line: str) -> None:
        tokens = line.split()
        if not tokens:
            return
        cmd = tokens[0].lower()
        handler = getattr(self, f"_cmd_{cmd}", None)
        if handler is None:
            self._say("Unknown command. Type 'help' for instructions.")
            return
        try:
            handler(tokens[1:])
        except LaneNameError as e:
            self._say(str(e))
        except (OSError, UnicodeDecodeError) as e:
            logger.exception("File operation failed")
            self._say(f"File operation failed: {e}")

    # ---- tasks ----
    def _cmd_add(self, args: List[str]) -> None:
        if not args:
            self._say("Usage: add <text...>")
            return
        lane = intake_lane(self.board.state, self.board.intake_lane_name)
        if lane is None:
            self._say(f'No "{self.board.intake_lane_name}" lane; use addto <lane> <text...>.')
            return
        self._add(lane, args)

    def _cmd_addto(self, args: List[str]) -> None:
        if len(args) < 2:
            self._say("Usage: addto <lane> <text...>")
            return
        lane = self._lane(args[0])
        if lane is None:
            self._say(f'Unknown lane "{args[0]}".')
            return
        self._add(lane, args[1:])

    def _add(self, lane: Lane, words: List[str]) -> None:
        if self.board.add_task(lane.id, ' '.join(words)) is None:
            self._say("Text required.")

    def _cmd_mv(self, args: List[str]) -> None:
        if len(args) not in (2, 4) or (len(args) == 4 and args[2].lower() != 'before'):
            self._say("Usage: mv <n> <lane> [before <m>]")
            return
        task_id = self._task_id(args[0])
        lane = self._lane(args[1])
        before = self._task_id(args[3]) if len(args) == 4 else None
        if task_id is None or lane is None or (len(args) == 4 and before is None):
            self._say("Invalid task or lane.")
            return
        source = self.board.state.lane_of(task_id)
        if not self.board.move_task(task_id, lane.id, before):
            self._say(f'Move not allowed: {source.name} -> {lane.name}.')

    def _cmd_order(self, args: List[str]) -> None:
        if len(args) != 2 or not args[1].isdigit():
            self._say("Usage: order <n> <pos>")
            return
        task_id = self._task_id(args[0])
        if task_id is None or not self.board.reorder_task(task_id, int(args[1]) - 1):
            self._say("Invalid id.")

    def _cmd_edit(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if args else None
        if task_id is None or len(args) < 2:
            self._say("Usage: edit <n> <text...>")
            return
        if not self.board.edit_task(task_id, ' '.join(args[1:])):
            self._say("Text required.")

    def _cmd_tag(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if args else None
        if task_id is None:
            self._say("Usage: tag <n> [tags...]")
            return
        self.board.set_tags(task_id, args[1:])

    def _cmd_type(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if args else None
        if task_id is None or len(args) > 2:
            self._say("Usage: type <n> [type]")
            return
        if not self.board.set_type(task_id, args[1] if len(args) == 2 else None):
            self._say(f'Invalid type "{args[1]}".')

    def _cmd_due(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if args else None
        if task_id is None or len(args) > 3:
            self._say("Usage: due <n> [YYYYMMDD [HH:MM]]")
            return
        date = args[1] if len(args) > 1 else None
        time = args[2] if len(args) > 2 else None
        if not self.board.set_deadline(task_id, date, time):
            self._say("Deadline must be YYYYMMDD with optional HH:MM.")

    def _cmd_note(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if len(args) == 1 else None
        if task_id is None:
            self._say("Usage: note <n>")
            return
        task = self.board.state.find_task(task_id)
        path = Storage.create_note_file(self.folder, task.text)
        self.board.attach_note(task_id, path)
        self._say(f"Note: {self.folder / path}")

    def _cmd_rm(self, args: List[str]) -> None:
        task_id = self._task_id(args[0]) if len(args) == 1 else None
        if task_id is None:
            self._say("Usage: rm <n>")
            return
        self.board.remove_task(task_id)

    _cmd_remove = _cmd_rm

    # ---- lanes ----
    def _cmd_lane(self, args: List[str]) -> None:
        sub = args[0].lower() if args else ''
        rest = args[1:]
        if sub == 'add' and len(rest) >= 2:
            after = self._lane(rest[0])
            if after is None:
                self._say(f'Unknown lane "{rest[0]}".')
                return
            self.board.add_lane(' '.join(rest[1:]), after.id)
        elif sub == 'rename' and len(rest) >= 2:
            lane = self._lane(rest[0])
            if lane is None:
                self._say(f'Unknown lane "{rest[0]}".')
                return
            self.board.rename_lane(lane.id, ' '.join(rest[1:]))
        elif sub == 'rm' and len(rest) == 1:
            lane = self._lane(rest[0])
            if lane is None:
                self._say(f'Unknown lane "{rest[0]}".')
                return
            count = len(lane.todos)
            self.board.delete_lane(lane.id)
            if count:
                self._say(f'Deleted lane "{lane.name}" with {count} task(s).')
        elif sub == 'mv' and len(rest) == 2 and rest[1].isdigit():
            lane = self._lane(rest[0])
            if lane is None:
                self._say(f'Unknown lane "{rest[0]}".')
                return
            self.board.move_lane(lane.id, int(rest[1]) - 1)
        else:
            self._say("Usage: lane add|rename|rm|mv ... (see help)")

    # ---- board ----
    def _cmd_archive(self, args: List[str]) -> None:
        export = self.board.archive_done(
            lambda e: Storage.write_archive_file(self.folder, e.filename, e.content)
        )
        if export is None:
            self._say("Nothing to archive.")
        else:
            self._say(f"Archived to {export.filename}.")

    def _cmd_wip(self, args: List[str]) -> None:
        if args and args[0].lower() in ('on', 'off'):
            self.board.wip_limit = args[0].lower() == 'on'
        elif not args:
            self.board.wip_limit = not self.board.wip_limit
        else:
            self._say("Usage: wip [on|off]")
            return
        self._say(f"WIP limit {'on' if self.board.wip_limit else 'off'}.")

    def _cmd_reload(self, args: List[str]) -> None:
        self._reload()
        self._say("Board reloaded.")
