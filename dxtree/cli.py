#!/usr/bin/env python3
"""
DXTREE Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    dxtree                              # Start REPL
    dxtree script.dx                    # Differentiate every line of a file
    dxtree -e "sin(add(z,3))"           # Differentiate one expression
    dxtree -e "cos(x)" -n 2             # Second derivative
    dxtree -e "sin(x)" -t --show-tree   # Show parsed tree and fired rules
    echo "multiply(x,x)" | dxtree       # Filter mode

Script Format (.dx files):
    #!/usr/bin/env dxtree
    :order 2
    :trace on

    sin(x)
    divide(x, 2)

REPL Commands:
    :help              Show help
    :trace on|off      Toggle tracing
    :order N           Set derivative order
    :tree on|off       Toggle printing of the parsed tree
    :vocab             List recognized names
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .derivative import differentiate
from .logger import dxtree_logger
from .symbols import Vocabulary, default_vocabulary
from .tree import format_tree, parse

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


class DxtreeCompleter:
    """Tab completer for the DXTREE REPL."""

    COMMANDS = [
        ":help", ":quit",
        ":trace", ":order", ":tree", ":vocab",
    ]

    SWITCH_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'DxtreeREPL'):
        self.repl = repl
        self.matches: list = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        """Get list of matches for the current input."""
        line = line.lstrip()

        # Command name
        if line.startswith(":") and " " not in line:
            return [c for c in self.COMMANDS if c.startswith(text)]

        # Command argument
        if line.startswith(":trace ") or line.startswith(":tree "):
            return [o for o in self.SWITCH_OPTIONS if o.startswith(text)]

        # Inside an expression: vocabulary names. Completion delimiters
        # don't split on parens, so complete the part after the last one.
        cut = max(text.rfind("("), text.rfind(","))
        prefix, partial = text[:cut + 1], text[cut + 1:]
        return [prefix + name for name in self.repl.vocabulary.names() if name.startswith(partial)]


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


def parse_switch(arg: str, current: bool) -> bool:
    """Interpret an on/off argument; an empty argument toggles."""
    if arg.lower() in ("on", "true", "1"):
        return True
    if arg.lower() in ("off", "false", "0"):
        return False
    return not current


class DxtreeREPL:
    """Interactive REPL for dxtree."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or default_vocabulary()
        self.trace = False
        self.order = 1
        self.show_tree = False
        self.running = True
        self.multi_line_buffer = ""
        self.history_file: Optional[Path] = None

        # Set up readline history and completion
        if HAS_READLINE:
            self.history_file = Path.home() / ".dxtree_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = DxtreeCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE and self.history_file is not None:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                dxtree_logger.warning("could not save history to %s: %s", self.history_file, e)

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd == "quit":
            self.running = False
            return None

        elif cmd == "trace":
            self.trace = parse_switch(arg, self.trace)
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "tree":
            self.show_tree = parse_switch(arg, self.show_tree)
            return f"Tree display {'enabled' if self.show_tree else 'disabled'}"

        elif cmd == "order":
            if not arg:
                return f"Order: {self.order}"
            try:
                order = int(arg)
            except ValueError:
                return f"Error: order must be an integer, got '{arg}'"
            if order < 1:
                return f"Error: order must be at least 1, got {order}"
            self.order = order
            return f"Order set to: {self.order}"

        elif cmd == "vocab":
            vocab = self.vocabulary
            return "\n".join([
                f"constants: {', '.join(sorted(vocab.constants))} (and any number)",
                f"variables: {', '.join(sorted(vocab.variables))}",
                f"functions: {', '.join(sorted(vocab.functions))}",
            ])

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """DXTREE REPL Commands:
  :help              Show this help
  :trace on|off      Toggle tracing of fired rules
  :order N           Set derivative order (default 1)
  :tree on|off       Toggle printing of the parsed tree
  :vocab             List recognized constants, variables and functions
  :quit              Exit

Syntax:
  sin(add(z, 3))                           Differentiate an expression
  divide(multiply(x, x), 2)                Functions nest with parentheses
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        # Command
        if line.startswith(":"):
            return self.handle_command(line)

        try:
            lines = []
            if self.show_tree:
                lines.append(f"tree: {format_tree(parse(line, self.vocabulary))}")

            if self.trace:
                output, trace = differentiate(line, order=self.order,
                                              vocabulary=self.vocabulary, trace=True)
                lines.append(output)
                if trace.steps:
                    lines.append(trace.format("rules"))
            else:
                lines.append(differentiate(line, order=self.order, vocabulary=self.vocabulary))

            return "\n".join(lines)

        except ValueError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print("DXTREE - Derivatives of eXpression TREEs")
        print("Type :help for help, :quit to exit")
        print("Multi-line input: expressions with unbalanced parens continue on next line")
        print()

        while self.running:
            try:
                if self.multi_line_buffer:
                    prompt = "...... "
                else:
                    prompt = "dxtree> "

                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += " " + line
                else:
                    self.multi_line_buffer = line

                paren_count = count_parens(self.multi_line_buffer)

                if paren_count > 0 and not self.multi_line_buffer.lstrip().startswith(":"):
                    # More open parens than close - continue reading
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                # Cancel multi-line input on Ctrl+C
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs dxtree scripts, single expressions and stdin."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.repl = DxtreeREPL(vocabulary)

    @staticmethod
    def _is_error(result: Optional[str]) -> bool:
        return bool(result) and result.startswith(("Error", "Unknown"))

    def _emit(self, result: Optional[str], where: str = "") -> int:
        """Print a processed line; errors go to stderr with exit code 1."""
        if not result:
            return 0
        if self._is_error(result):
            print(f"{where}{result}", file=sys.stderr)
            return 1
        print(result)
        return 0

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, only report errors

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            result = self.repl.process_line(line)
            # Command confirmations are not echoed
            if (quiet or line.lstrip().startswith(":")) and not self._is_error(result):
                continue
            if self._emit(result, f"{path}:{lineno}: "):
                return 1

        return 0

    def run_expression(self, expr_str: str) -> int:
        """Differentiate a single expression. Returns the exit code."""
        return self._emit(self.repl.process_line(expr_str))

    def run_stdin(self) -> int:
        """Read expressions from stdin, one per line. Returns the exit code."""
        for line in sys.stdin:
            if self._emit(self.repl.process_line(line)):
                return 1
        return 0


def main(argv: Optional[list] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="dxtree",
        description="DXTREE - Derivatives of eXpression TREEs",
        epilog="Examples:\n"
               "  dxtree                          Start REPL\n"
               "  dxtree script.dx                Run script\n"
               "  dxtree -e 'sin(add(z,3))'       Differentiate expression\n"
               "  dxtree -e 'cos(x)' -n 2         Second derivative\n"
               "  echo 'multiply(x,x)' | dxtree   Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run, one expression per line"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Differentiate a single expression"
    )

    parser.add_argument(
        "-n", "--order",
        type=int,
        default=1,
        help="Derivative order (default: 1)"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Show the differentiation rules that fired"
    )

    parser.add_argument(
        "--show-tree",
        action="store_true",
        help="Print the parsed tree before its derivative"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log parsing and rule application to stderr"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (scripts only report errors)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.order < 1:
        parser.error(f"order must be at least 1, got {args.order}")

    if args.verbose:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
        dxtree_logger.setLevel(logging.DEBUG)

    runner = ScriptRunner()
    runner.repl.trace = args.trace
    runner.repl.order = args.order
    runner.repl.show_tree = args.show_tree

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.expr:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin())

    else:
        runner.repl.run()


if __name__ == "__main__":
    main()
