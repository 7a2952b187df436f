#!/usr/bin/env python3
"""Tabula main entry point.

Loads CSV files as datasets and runs the analysis agent in the terminal.

Usage:
    python main.py --data sales=sales.csv                 # Interactive mode
    python main.py --data sales=sales.csv --data fx=fx.csv
    python main.py --data sales=sales.csv --verbose       # Show tool calls
    python main.py --data sales=sales.csv --no-images     # Skip report PNG previews
    python main.py --data sales=sales.csv "Revenue by region as a bar chart"

Slash commands (type /help for full list):
    /reset       - Start over (keeps the loaded datasets)
    /artifacts   - List the charts, tables and reports created so far
    /log         - Print the session activity log
    /quit        - Exit
    Anything without a leading / is sent as a chat message.
"""

import argparse
import os
import sys
from pathlib import Path

import pandas as pd

# readline is optional (not available on Windows without pyreadline3)
try:
    import readline
    _READLINE_AVAILABLE = True
except ImportError:
    _READLINE_AVAILABLE = False

from agent.event_bus import (
    ARTIFACT_CREATED,
    STEP_UPDATED,
    TEXT_DELTA,
    TOOL_CALL,
    TOOL_RESULT,
    SessionEvent,
)

# ---- ANSI colors ----

_USE_COLOR = True
_VERBOSE = False


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def dim(text: str) -> str:
    return _c("2", text)


def cyan(text: str) -> str:
    return _c("36", text)


def green(text: str) -> str:
    return _c("32", text)


def yellow(text: str) -> str:
    return _c("33", text)


def red(text: str) -> str:
    return _c("31", text)


def bold(text: str) -> str:
    return _c("1", text)


# ---- Readline ----

def _history_path() -> str:
    from config import get_data_dir
    return os.path.join(str(get_data_dir()), ".cli_history")


def setup_readline():
    if not _READLINE_AVAILABLE:
        return
    readline.set_history_length(500)
    try:
        readline.read_history_file(_history_path())
    except (FileNotFoundError, OSError):
        pass


def save_readline():
    if not _READLINE_AVAILABLE:
        return
    try:
        Path(_history_path()).parent.mkdir(parents=True, exist_ok=True)
        readline.write_history_file(_history_path())
    except OSError:
        pass


# ---- Data loading ----

def parse_data_args(values: list[str]) -> dict[str, pd.DataFrame]:
    """Turn ``name=path.csv`` arguments into a dataset mapping.

    A bare path uses the file stem as the dataset name.
    """
    datasets: dict[str, pd.DataFrame] = {}
    for value in values or []:
        if "=" in value:
            name, path = value.split("=", 1)
        else:
            path = value
            name = Path(value).stem
        name = name.strip()
        if not name:
            raise ValueError(f"Missing dataset name in --data {value!r}")
        datasets[name] = pd.read_csv(path.strip())
    return datasets


# ---- Event display ----

_STEP_MARKERS = {
    "running": "…",
    "completed": "✓",
    "error": "✗",
    "warning": "!",
    "reviewing": "?",
}


def display_event(event: SessionEvent):
    """Print one session event to the terminal."""
    data = event.data

    if event.type == TOOL_CALL:
        if _VERBOSE:
            name = data.get("tool_name", "(unknown tool)")
            args = data.get("tool_args", {})
            args_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
            print(dim(f"  [Tool: {name}({args_str})]"))

    elif event.type == TOOL_RESULT:
        if _VERBOSE:
            name = data.get("tool_name", "(unknown tool)")
            print(dim(f"  [Result: {name} -> {green('ok')}] ({data.get('elapsed_ms', 0)} ms)"))

    elif event.type == STEP_UPDATED:
        step = data.get("step", {})
        status = step.get("status", "")
        if status == "pending":
            return
        marker = _STEP_MARKERS.get(status, " ")
        line = f"  {marker} {step.get('sequence_number')}. {step.get('description')}"
        if status == "error":
            print(red(line) + dim(f"  ({step.get('error')})"))
        elif status == "warning":
            print(yellow(line))
        elif status == "running" and not _VERBOSE:
            return
        else:
            print(dim(line))

    elif event.type == ARTIFACT_CREATED:
        artifact = data.get("artifact")
        if artifact is not None:
            print(yellow(f"  [Artifact: {artifact.title}]"))

    elif event.type == TEXT_DELTA:
        text = data.get("text", "")
        if text:
            print(f"\n{text}")


# ---- Commands ----

def cmd_help():
    print()
    print(bold("Slash commands:"))
    print(f"  {cyan('/reset')}      Start over (keeps the loaded datasets)")
    print(f"  {cyan('/artifacts')}  List the charts, tables and reports created so far")
    print(f"  {cyan('/log')}        Print the session activity log")
    print(f"  {cyan('/quit')}       Exit")
    print(f"  {cyan('/help')}       Show this message")
    print()
    print(dim("  Anything else is sent as a chat message to the agent."))


def cmd_artifacts(agent):
    artifacts = agent.artifacts
    if not artifacts:
        print(dim("  No artifacts yet."))
        return
    for artifact in artifacts:
        reviewed = green(" (reviewed)") if artifact.reviewed else ""
        print(f"  [{artifact.kind}] {artifact.title}{reviewed}")


def cmd_log(agent):
    log = agent.event_bus.format_log()
    print(log or dim("  Log is empty."))


def print_outcome(outcome):
    print()
    if outcome.status == "clarification_needed":
        print(yellow(outcome.message))
    else:
        print(outcome.message)


def print_welcome(datasets: dict):
    print()
    print("=" * 60)
    print("  Tabula: conversational data analysis")
    print("=" * 60)
    print()
    if datasets:
        print("Loaded datasets:")
        for name, df in datasets.items():
            print(f"  {bold(name)}: {len(df)} rows, columns {', '.join(map(str, df.columns))}")
    else:
        print(yellow("No datasets loaded. Pass --data name=file.csv to load one."))
    print()
    print("Type /help for available commands.")
    print("-" * 60)


# ---- Main ----

def main():
    global _USE_COLOR, _VERBOSE

    parser = argparse.ArgumentParser(description="Conversational analysis of CSV datasets")
    parser.add_argument(
        "command", nargs="?", default=None,
        help="Single request to run (non-interactive mode)",
    )
    parser.add_argument(
        "--data", "-d", action="append", default=[], metavar="NAME=PATH",
        help="Load a CSV file as a dataset (repeatable)",
    )
    parser.add_argument(
        "--no-color", action="store_true",
        help="Disable ANSI color output",
    )
    parser.add_argument(
        "--no-images", action="store_true",
        help="Do not render PNG previews for reports",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Show tool calls and debug logging",
    )
    args = parser.parse_args()

    if args.no_color:
        _USE_COLOR = False
    _VERBOSE = args.verbose

    try:
        datasets = parse_data_args(args.data)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        print(red(f"Could not load data: {e}"))
        sys.exit(1)

    from agent.core import create_agent

    try:
        agent = create_agent(
            datasets,
            verbose=args.verbose,
            render_images=False if args.no_images else None,
        )
    except ValueError as e:
        print(red(str(e)))
        sys.exit(1)
    agent.event_bus.subscribe(display_event)

    # Single-command mode
    if args.command:
        outcome = agent.run(args.command)
        print_outcome(outcome)
        return

    # Interactive mode
    setup_readline()
    print_welcome(datasets)

    try:
        while True:
            try:
                user_input = input(cyan("\n> ")).strip()
            except EOFError:
                break

            if not user_input:
                continue

            # Slash commands
            if user_input.startswith("/"):
                cmd = user_input[1:].lower().strip()

                if cmd in ("quit", "exit", "q"):
                    break
                elif cmd == "help":
                    cmd_help()
                elif cmd == "reset":
                    agent.reset()
                    print(dim("  Session reset."))
                elif cmd == "artifacts":
                    cmd_artifacts(agent)
                elif cmd == "log":
                    cmd_log(agent)
                else:
                    print(red(f"  Unknown command: /{cmd}"))
                    print(dim("  Type /help for available commands."))
                continue

            try:
                outcome = agent.run(user_input)
            except KeyboardInterrupt:
                print(yellow("\n  Interrupted."))
                continue
            print_outcome(outcome)

    except KeyboardInterrupt:
        pass
    finally:
        print()
        save_readline()
        print("Goodbye.")


if __name__ == "__main__":
    main()
