"""Command-line entry point: interactive incremental text generation.

Examples::

    genloop --tokenizer-file tokenizer.json --prompt "Hello"
    genloop --tokenizer-file tokenizer.json --temperature 0.8 --top-p 0.9
    GENLOOP_SEED=42 genloop --tokenizer-file tokenizer.json -n 200

Without ``--prompt`` the tool reads prompts in a loop until EOF (Ctrl+D) or
Ctrl+C, streaming each completion followed by a throughput summary.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from prompt_toolkit import prompt as read_prompt
from pydantic import ValidationError

from genloop.config import GenLoopConfig, resolve_config, validate_config
from genloop.exceptions import (
    CollaboratorError,
    ConfigValidationError,
    GenLoopError,
    SamplingError,
)
from genloop.generation import TextGeneration
from genloop.model.registry import ModelRegistry
from genloop.tokenizer import HFTokenizer

if TYPE_CHECKING:
    from collections.abc import Sequence

    from genloop.model.base import ModelForward


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genloop",
        description="Stream text from an autoregressive model, one token at a time.",
    )
    parser.add_argument("--prompt", type=str, default=None,
                        help="Run a single prompt instead of the interactive loop.")
    parser.add_argument("--temperature", type=float, default=None,
                        help="The temperature used to generate samples (<= 0 selects argmax).")
    parser.add_argument("--top-p", type=float, default=None,
                        help="Nucleus sampling probability cutoff.")
    parser.add_argument("--top-k", type=int, default=None,
                        help="Only sample among the top K samples.")
    parser.add_argument("--seed", type=int, default=None,
                        help="The seed to use when generating random samples.")
    parser.add_argument("--sample-len", "-n", type=int, default=None,
                        help="The length of the sample to generate (in tokens).")
    parser.add_argument("--repeat-penalty", type=float, default=None,
                        help="Penalty to be applied for repeating tokens, 1. means no penalty.")
    parser.add_argument("--repeat-last-n", type=int, default=None,
                        help="The context size to consider for the repeat penalty.")
    parser.add_argument("--tokenizer-file", type=str, default=None,
                        help="Path to a tokenizer.json file.")
    parser.add_argument("--model", type=str, default=None,
                        help="Registered model backend (default: 'random').")
    parser.add_argument("--vocab-size", type=int, default=None,
                        help="Vocabulary size for backends that need one.")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable per-step logging on stderr.")
    return parser


def _load_config(args: argparse.Namespace) -> GenLoopConfig:
    overrides = {
        "temperature": args.temperature,
        "top_p": args.top_p,
        "top_k": args.top_k,
        "seed": args.seed,
        "sample_len": args.sample_len,
        "repeat_penalty": args.repeat_penalty,
        "repeat_last_n": args.repeat_last_n,
        "tokenizer_file": args.tokenizer_file,
        "model": args.model,
        "vocab_size": args.vocab_size,
    }
    try:
        config = resolve_config(GenLoopConfig(), overrides)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid configuration: {exc}") from exc
    validate_config(config)
    return config


def _build_model(config: GenLoopConfig) -> ModelForward:
    return ModelRegistry.build(config)


def _write(fragment: str) -> None:
    sys.stdout.write(fragment)
    sys.stdout.flush()


def _run_session(generation: TextGeneration, prompt: str) -> bool:
    """Run one prompt, reporting collaborator failures without exiting."""
    try:
        report = generation.run(prompt, emit=_write)
    except (CollaboratorError, SamplingError) as exc:
        sys.stdout.write("\n")
        print(f"Error: {exc}", file=sys.stderr)
        return False
    sys.stdout.write(f"\n{report.summary()}\n")
    sys.stdout.flush()
    return True


def _interactive_loop(generation: TextGeneration) -> None:
    while True:
        try:
            query = read_prompt("> ")
        except (EOFError, KeyboardInterrupt):
            break
        _run_session(generation, query)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, build the collaborators and run generation."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = _load_config(args)
        if not config.tokenizer_file:
            raise ConfigValidationError(
                "A tokenizer is required: pass --tokenizer-file or set GENLOOP_TOKENIZER_FILE"
            )
        tokenizer = HFTokenizer.from_file(config.tokenizer_file)
        model = _build_model(config)
    except GenLoopError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        generation = TextGeneration(model, tokenizer, config)
        if args.prompt is not None:
            if not _run_session(generation, args.prompt):
                return 1
        else:
            _interactive_loop(generation)
    except GenLoopError as exc:
        # Configuration and vocabulary errors end the process.
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        model.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
