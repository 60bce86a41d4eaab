"""IDA plugin: File menu action that loads a script dump into the open database.

Drop a stub containing ``from dumpmark.ida.plugin import PLUGIN_ENTRY`` into
IDA's plugins directory with dumpmark installed in IDA's Python.
"""

import sys
from pathlib import Path

import idaapi
import ida_kernwin

from dumpmark import pipeline
from dumpmark.config import load_config
from dumpmark.errors import ConfigError
from dumpmark.ida.host import IdaHost
from dumpmark.utils.logging import setup_logging

PLUGIN_NAME = "dumpmark"
ACTION_NAME = "dumpmark:load"
ACTION_LABEL = "Load script dump JSON"
MENU_PATH = "File/Load file/"


def _msg(text: str) -> None:
    ida_kernwin.msg(f"[{PLUGIN_NAME}] {text}\n")


def load_interactive() -> bool:
    """Ask for the declaration file and the dump, then apply it.

    Returns:
        True if the dump was applied, False if cancelled or unreadable
    """
    try:
        config = load_config()
    except ConfigError as e:
        _msg(str(e))
        return False
    setup_logging(config.logging.level, config.logging.json_output, stream=sys.stdout)

    declarations = config.annotate.declarations
    if declarations is None:
        picked = ida_kernwin.ask_file(0, "*.h", "Select il2cpp.h to load, this is optional")
        declarations = Path(picked) if picked else None

    dump = ida_kernwin.ask_file(0, "*.json", "Select JSON file to load")
    if not dump:
        _msg("No file selected")
        return False

    result = pipeline.run(
        IdaHost(),
        Path(dump),
        declarations=declarations,
        image_base=config.annotate.image_base,
        string_prefix=config.annotate.string_prefix,
    )
    if not result.ran or result.report is None:
        _msg(f"Nothing applied: {result.error}")
        return False

    report = result.report
    _msg(f"{report.applied} of {report.seen} records applied, {report.skipped} skipped")
    ida_kernwin.request_refresh(ida_kernwin.IWID_DISASMS)
    return True


class LoadDumpHandler(ida_kernwin.action_handler_t):
    """Menu action that runs load_interactive."""

    def activate(self, ctx):
        return 1 if load_interactive() else 0

    def update(self, ctx):
        return ida_kernwin.AST_ENABLE_ALWAYS


class DumpmarkPlugin(idaapi.plugin_t):
    flags = idaapi.PLUGIN_KEEP
    comment = "Apply functions, names, signatures and comments from a script dump"
    help = "File > Load file > Load script dump JSON"
    wanted_name = "Load script dump"
    wanted_hotkey = ""

    def init(self):
        desc = ida_kernwin.action_desc_t(ACTION_NAME, ACTION_LABEL, LoadDumpHandler())
        if not ida_kernwin.register_action(desc):
            _msg("cannot register action, skipping.")
            return idaapi.PLUGIN_SKIP
        ida_kernwin.attach_action_to_menu(MENU_PATH, ACTION_NAME, ida_kernwin.SETMENU_APP)
        return idaapi.PLUGIN_KEEP

    def run(self, arg):
        load_interactive()

    def term(self):
        ida_kernwin.detach_action_from_menu(MENU_PATH, ACTION_NAME)
        ida_kernwin.unregister_action(ACTION_NAME)


def PLUGIN_ENTRY():
    return DumpmarkPlugin()
