import argparse
import glob
import json
import os
import sys

from pydantic import ValidationError

from compiler import compile_program, write_outputs, set_verbose
from hakoc.config import CompilerOptions
from hakoc.console import Console
from hakoc.errors import CompilationCancelled, ProgramError, Severity

CONFIG_FILE = "hako.json"


def log(message):
    """Log informational messages to stderr."""
    print(f"\033[92m\033[1mINFO:\033[0m {message}", file=sys.stderr)


def load_options(args):
    """Options from the config file, overridden by command line flags."""
    config_file = args.config or CONFIG_FILE
    if args.config and not os.path.exists(config_file):
        print(f"Error: Config file '{config_file}' not found.", file=sys.stderr)
        sys.exit(1)
    overrides = {}
    if args.view_engine:
        overrides["use_view_engine"] = True
    if args.debug:
        overrides["debug"] = True
    if args.workers:
        overrides["workers"] = args.workers
    if getattr(args, "summaries", False):
        overrides["emit_summaries"] = True
    try:
        if os.path.exists(config_file):
            return CompilerOptions.from_file(config_file, **overrides)
        return CompilerOptions.model_validate(overrides)
    except json.JSONDecodeError as e:
        print(f"Error: '{config_file}' is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: Invalid configuration in '{config_file}':\n{e}", file=sys.stderr)
        sys.exit(1)


def find_sources(sources):
    files = []
    for source in sources:
        if os.path.isfile(source):
            files.append(source)
        elif os.path.isdir(source):
            found = sorted(glob.glob(os.path.join(source, "**", "*.py"), recursive=True))
            files.extend(f for f in found if not f.endswith("_factory.py"))
        else:
            print(f"Error: '{source}' is neither a file nor directory", file=sys.stderr)
            sys.exit(1)
    if not files:
        print("Error: No source files found", file=sys.stderr)
        sys.exit(1)
    return files


def run_compiler(args):
    set_verbose(args.verbose)
    options = load_options(args)
    files = find_sources(args.sources)
    console = Console()
    log(f"Compiling {len(files)} file(s)...")
    try:
        run = compile_program(files, options, source_roots=args.source_root or None, console=console)
    except ProgramError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except CompilationCancelled as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    for diagnostic in run.diagnostics:
        if diagnostic.severity == Severity.ERROR:
            console.error(str(diagnostic))
    return run


def cmd_build(args):
    run = run_compiler(args)
    written = write_outputs(run, args.out_dir, args.source_root[0] if args.source_root else None)
    for path in written:
        log(f"  Wrote {path}")
    errors = [d for d in run.diagnostics if d.severity == Severity.ERROR]
    if errors:
        log(f"Build finished with {len(errors)} error(s)")
        sys.exit(1)
    log(f"Build succeeded: {len(run.generated_files)} factory file(s)")


def cmd_check(args):
    run = run_compiler(args)
    errors = [d for d in run.diagnostics if d.severity == Severity.ERROR]
    if errors:
        log(f"Found {len(errors)} error(s)")
        sys.exit(1)
    log("No errors found")


def cmd_init(args):
    log("Initializing project...")
    with open(CONFIG_FILE, "w") as f:
        json.dump(CompilerOptions().model_dump(mode="json", exclude_none=True), f, indent=2)
    os.makedirs("app", exist_ok=True)
    with open(os.path.join("app", "__init__.py"), "w") as f:
        f.write("")
    with open(os.path.join("app", "app.py"), "w") as f:
        f.write('''from hakoc.runtime.common import CommonModule
from hakoc.runtime.core import Component, Input, Module


@Component(selector="app-root", template_url="./app.html", styles=["h1 { color: teal; }"])
class AppComponent:
    title = Input()

    def __init__(self):
        self.title = "Hello Hako"


@Module(imports=[CommonModule], declarations=[AppComponent], bootstrap=[AppComponent])
class AppModule:
    pass
''')
    with open(os.path.join("app", "app.html"), "w") as f:
        f.write('<h1>{{ title }}</h1>\n')
    log(f"Created {CONFIG_FILE}, app/app.py and app/app.html")


def add_compile_arguments(parser):
    parser.add_argument("sources", nargs="+", help="Entry source files or directories")
    parser.add_argument("--config", help=f"Options file (default: {CONFIG_FILE} if present)")
    parser.add_argument("--source-root", action="append", help="Source root (repeatable)")
    parser.add_argument("--view-engine", action="store_true", help="Generate view definitions instead of view classes")
    parser.add_argument("--debug", action="store_true", help="Generate debug info")
    parser.add_argument("--workers", type=int, help="Number of files compiled in parallel")


def main():
    parser = argparse.ArgumentParser(description="Hako AOT compiler")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output (sent to stderr)")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Compile components into factory modules")
    add_compile_arguments(build)
    build.add_argument("--out-dir", help="Write generated files here instead of next to the sources")
    build.add_argument("--summaries", action="store_true", help="Also write .summary.json files")

    check = subparsers.add_parser("check", help="Report diagnostics without writing files")
    add_compile_arguments(check)

    subparsers.add_parser("init", help="Init project")

    args = parser.parse_args()

    if args.command == "build": cmd_build(args)
    elif args.command == "check": cmd_check(args)
    elif args.command == "init": cmd_init(args)
    else: parser.print_help()


if __name__ == "__main__":
    main()
