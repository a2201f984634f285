import argparse
import glob
import logging
import os
import shutil
import subprocess
import sys
from typing import List, Optional, Tuple

from ytlang.c_code_generator import CCodeGenerator
from ytlang.errors import CompilerError
from ytlang.imports import ModuleResolver
from ytlang.inference import TypeInferrer
from ytlang.lexer import Lexer
from ytlang.log_formatter import LogFormatter
from ytlang.parser import Parser, Program
from ytlang.type_checker import TypeChecker
from ytlang.utils.file_utils import format_source_context


def setup_logging(debug_mode=False):
    """Configure logging with custom formatter."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    # Calling this twice (e.g. from tests) should not duplicate output
    for handler in list(root_logger.handlers):
        if isinstance(handler.formatter, LogFormatter):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    log_formatter = LogFormatter()
    console_handler.setFormatter(log_formatter)
    root_logger.addHandler(console_handler)


def detect_c_compiler():
    """Auto-detect available C compiler."""
    compiler = os.environ.get("CC")
    if not compiler:
        for comp in ["gcc", "clang", "cc"]:
            if shutil.which(comp):
                compiler = comp
                break
    return compiler


def report_error(error: CompilerError, source: Optional[str] = None, filename: str = "<input>") -> None:
    logging.error(f"{error.label}: {error}{format_source_context(source, error.index, filename)}")


def analyze(
    source: str,
    filename: str = "<input>",
    project_root: Optional[str] = None,
    std_root: Optional[str] = None,
) -> Tuple[Program, TypeInferrer, List[CompilerError]]:
    """
    Run the front end over one source file: lex, parse, merge imports, infer
    and check. Fatal errors are raised; checker diagnostics are returned.
    """
    tokens = Lexer(source).tokenize()
    logging.debug("tokens:\n" + "\n".join(str(token) for token in tokens))

    program = Parser(tokens).parse()

    resolver = ModuleResolver(project_root, std_root)
    entry_path = os.path.join(resolver.project_root, filename) if filename != "<input>" else None
    resolver.merge(program, entry_path)
    logging.debug(f"ast:\n{program}")

    inferrer = TypeInferrer(program)
    inferrer.infer()
    diagnostics = TypeChecker(program).check()
    return program, inferrer, diagnostics


def compile_file(file_path, cc=None, output=None, std_root=None, emit_c=False, check_only=False):
    """Compile a single source file. Returns the output path (True for --check) or False on failure."""
    logging.info(f"Starting compilation of {file_path}...")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            file_content = f.read()
    except FileNotFoundError:
        logging.error(f"File not found: {file_path}")
        return False
    except OSError as e:
        logging.error(f"Error reading file {file_path}: {e}")
        return False

    project_root = os.path.dirname(os.path.abspath(file_path))
    filename = os.path.basename(file_path)

    try:
        program, inferrer, diagnostics = analyze(file_content, filename, project_root, std_root)
    except CompilerError as e:
        report_error(e, file_content, filename)
        return False

    if diagnostics:
        for diagnostic in diagnostics:
            report_error(diagnostic, file_content, filename)
        logging.error(f"Type checking failed with {len(diagnostics)} errors")
        return False

    if check_only:
        logging.info(f"{file_path}: no errors found")
        return True

    logging.debug("Starting code generation...")
    try:
        c_code = CCodeGenerator(program, inferrer.type_of).generate()
    except CompilerError as e:
        report_error(e)
        return False

    base_name = os.path.splitext(os.path.basename(file_path))[0]

    if emit_c:
        c_path = output or os.path.join("build", f"{base_name}.c")
        os.makedirs(os.path.dirname(c_path) or ".", exist_ok=True)
        with open(c_path, "w", encoding="utf-8") as f:
            f.write(c_code)
        logging.info(f"C code written to {c_path}")
        return c_path

    # Create temp folder if it doesn't exist
    os.makedirs("build/temp", exist_ok=True)
    temp_c_file = os.path.join("build/temp", f"{base_name}.c")

    try:
        with open(temp_c_file, "w", encoding="utf-8") as f:
            f.write(c_code)
    except OSError as e:
        logging.error(f"Failed to write C code to {temp_c_file}: {e}")
        return False

    logging.debug(f"Transpiled code written to {temp_c_file}")

    compiler = cc or detect_c_compiler()
    if not compiler:
        logging.error("No C compiler found. Install gcc/clang or specify with --cc")
        return False

    logging.debug(f"Using C compiler: {compiler}")
    compiled_binary = temp_c_file[:-2]
    compile_command = [compiler, "-O2", "-std=c11", temp_c_file, "-o", compiled_binary, "-lm"]

    try:
        process = subprocess.run(
            compile_command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except OSError as e:
        logging.error(f"Failed to execute compiler: {e}")
        return False

    if process.returncode != 0:
        logging.error(f"Compilation failed with error:\n{process.stderr}")
        return False
    if process.stdout:
        logging.debug(f"Compilation output:\n{process.stdout}")

    logging.info("Compilation successful!")

    output_path = output or os.path.join("build", base_name)
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    try:
        shutil.move(compiled_binary, output_path)
    except OSError as e:
        logging.error(f"Failed to move compiled binary: {e}")
        return False

    logging.info(f"Binary written to {output_path}")
    return output_path


def main(argv=None) -> int:
    """Main entry point for the ytlang compiler."""
    parser = argparse.ArgumentParser(description="ytlang compiler")

    parser.add_argument("-d", "--debug", action="store_true", help="Debug mode")
    parser.add_argument("-o", "--output", help="Output file")
    parser.add_argument(
        "--cc", help="C compiler to use (default: $CC or auto-detect)", default=None
    )
    parser.add_argument(
        "--std-path",
        help="Standard library root for 'use std/...' (default: $YT_STD_PATH or the bundled library)",
        default=None,
    )
    parser.add_argument("--emit-c", action="store_true", help="Write the generated C code instead of a binary")
    parser.add_argument("--check", action="store_true", help="Only type check, do not generate code")
    parser.add_argument("file", nargs="?", help="Input file")
    parser.add_argument("--dir", help="Compile all .yt files in directory")

    args = parser.parse_args(argv)

    setup_logging(args.debug)

    if args.debug:
        logging.debug(args)

    if not args.file and not args.dir:
        logging.error("No input file or directory specified")
        return 1

    if args.dir and args.output:
        logging.error("Cannot specify output file when compiling a directory")
        return 1

    std_root = args.std_path or os.environ.get("YT_STD_PATH")
    options = dict(cc=args.cc, std_root=std_root, emit_c=args.emit_c, check_only=args.check)

    failed = 0

    if args.file:
        if not compile_file(args.file, output=args.output, **options):
            failed += 1

    if args.dir:
        if not os.path.isdir(args.dir):
            logging.error(f"Directory not found: {args.dir}")
            return 1

        logging.info(f"Compiling all .yt files in {args.dir}")
        source_files = sorted(glob.glob(os.path.join(args.dir, "*.yt")))

        if not source_files:
            logging.warning(f"No .yt files found in {args.dir}")

        successful = 0
        for file_path in source_files:
            if compile_file(file_path, **options):
                successful += 1
            else:
                failed += 1

        logging.info(
            f"Directory compilation complete: {successful} successful, {len(source_files) - successful} failed"
        )

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
