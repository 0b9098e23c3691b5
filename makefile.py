#!/usr/bin/env python3
"""
makefile.py - Task runner for the orderedindex project.

Usage:
    python makefile.py <target>

Requires: pip install -e ".[dev]"
"""

import shutil
import subprocess
import sys
from collections import defaultdict
from pathlib import Path

from colorama import Fore, Style
from colorama import init as colorama_init

colorama_init(autoreset=True)

ROOT = Path(__file__).parent.resolve()


def print_header(title):
    bar = Fore.CYAN + Style.BRIGHT + "=" * 52 + Style.RESET_ALL
    label = Fore.CYAN + Style.BRIGHT + f"  {title}" + Style.RESET_ALL
    print(f"\n{bar}\n{label}\n{bar}")


def print_step(msg):
    print(f"{Fore.YELLOW}-->{Style.RESET_ALL} {msg}")


def print_success(msg):
    print(f"{Fore.GREEN}[OK]{Style.RESET_ALL} {msg}")


def run_cmd(args, allow_failure=False):
    """
    Run a command as a subprocess, streaming output directly to the terminal.
    Exits with the subprocess exit code on failure unless allow_failure=True.
    """
    try:
        result = subprocess.run(args, cwd=ROOT)
    except FileNotFoundError:
        print(f"{Fore.RED}[ERROR]{Style.RESET_ALL} Command not found: '{args[0]}'")
        if not allow_failure:
            sys.exit(127)
        return 127
    if result.returncode != 0 and not allow_failure:
        sys.exit(result.returncode)
    return result.returncode


def target_test():
    print_header("Running All Tests")
    run_cmd([sys.executable, "-m", "pytest", "-v"])


def target_test_btree():
    print_header("Running B+ Tree Tests")
    run_cmd([sys.executable, "-m", "pytest", "tests/test_btree", "-v"])


def target_test_coverage():
    print_header("Running Tests with Coverage")
    run_cmd([sys.executable, "-m", "pytest", "--cov=orderedindex", "--cov-report=term-missing"])


def target_demo():
    print_header("Ordered Index Demo (order 4)")
    print_step("Inserting 10 20 5 6 12 30 7 17, deleting 20, scanning 6..17")
    run_cmd([
        sys.executable, "-m", "orderedindex",
        "--order", "4",
        "--insert", "10", "20", "5", "6", "12", "30", "7", "17",
        "--delete", "20",
        "--range", "6", "17",
    ])


def target_clean():
    print_header("Cleaning Caches")
    for pattern in ("**/__pycache__", ".pytest_cache", "index_data"):
        for path in ROOT.glob(pattern):
            shutil.rmtree(path, ignore_errors=True)
            print_step(f"Removed {path.relative_to(ROOT)}")
    print_success("Clean")


TARGETS = {
    "test": (target_test, "Run all tests", "Testing"),
    "test-btree": (target_test_btree, "Run B+ tree tests only", "Testing"),
    "test-coverage": (target_test_coverage, "Run tests with coverage", "Testing"),
    "demo": (target_demo, "Build a small tree and render it", "Run"),
    "clean": (target_clean, "Remove caches and demo data", "Tools"),
    "help": (None, "Show this help message", "Meta"),
}


def target_help():
    title = Fore.CYAN + Style.BRIGHT + "orderedindex - Available Commands" + Style.RESET_ALL
    print(f"\n{title}\n")
    groups = defaultdict(list)
    for name, (_, desc, group) in TARGETS.items():
        groups[group].append((name, desc))
    for group in ["Testing", "Run", "Tools", "Meta"]:
        if group not in groups:
            continue
        print(Fore.YELLOW + Style.BRIGHT + f"{group}:" + Style.RESET_ALL)
        for name, desc in groups[group]:
            print(f"  {Fore.GREEN}{name.ljust(24)}{Style.RESET_ALL}  {desc}")
        print()


TARGETS["help"] = (target_help, "Show this help message", "Meta")


def main():
    if len(sys.argv) < 2:
        target_help()
        sys.exit(0)

    name = sys.argv[1]

    if name not in TARGETS:
        print(f"{Fore.RED}[ERROR]{Style.RESET_ALL} Unknown target: '{name}'")
        print("  Run:  python makefile.py help  to list all available targets.")
        sys.exit(1)

    func, _, _ = TARGETS[name]
    func()


if __name__ == "__main__":
    main()
