import sys
from pathlib import Path

from easel.easel_runtime import ScriptRunner
from easel.easel_printer import Printer
from easel.easel_serialize import dump_debug_artifacts

PROMPT = ">> "
CONTINUATION_PROMPT = ".. "


def read_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def _print_stdout_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))


def _parse_args(argv):
    """Returns (file_path, dbg_format). dbg_format is None, 'json' or 'yaml'."""
    file_path = None
    dbg = None
    for arg in argv:
        if arg == "--dbg":
            dbg = "json"
        elif arg.startswith("--dbg="):
            dbg = arg.split("=", 1)[1].lower() or "json"
            if dbg not in ("json", "yaml"):
                print(f"Error: unsupported --dbg format: {dbg}", file=sys.stderr)
                raise SystemExit(2)
        elif arg.startswith("-"):
            print(f"Error: unknown option: {arg}", file=sys.stderr)
            raise SystemExit(2)
        elif file_path is None:
            file_path = arg
        else:
            print("Error: only one script file may be given", file=sys.stderr)
            raise SystemExit(2)
    return file_path, dbg


def run_script_file(file_path: str, dbg=None):
    """Run an Easel script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    # Dumps are written even when a stage failed; they show how far it got.
    if dbg:
        dump_debug_artifacts(result.tokens, result.statements, fmt=dbg, directory=Path.cwd())
    _print_stdout_effects(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)


def repl():
    print("Easel REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()
    printer = Printer()

    while True:
        try:
            raw = read_line(PROMPT)
            if raw == "":
                raise EOFError
            if not raw.strip():
                continue
            if raw.strip() == "exit":
                break

            source = raw
            result = runner.handle_script(source, interactive=True)
            # Keep reading while the input stops inside a string or statement.
            while result.incomplete:
                more = read_line(CONTINUATION_PROMPT)
                if more == "":
                    break
                source += more
                result = runner.handle_script(source, interactive=True)

            _print_stdout_effects(result)
            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue
            if result.value is not None:
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    file_path, dbg = _parse_args(sys.argv[1:] if argv is None else argv)
    if file_path is not None:
        run_script_file(file_path, dbg)
        return
    try:
        repl()
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    main()
