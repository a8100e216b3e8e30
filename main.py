#!/usr/bin/env python3
"""
splashbp: Residual Splash Belief Propagation

Denoise synthetic images with asynchronous, residual-prioritized loopy
belief propagation on a 4-connected lattice MRF.

Usage:
    # Denoise a synthetic sunset
    python main.py denoise --rows 64 --cols 64 --colors 5 --sigma 2

    # Save original / noisy / predicted arrays
    python main.py denoise --output run.npz

    # Run demos
    python main.py demo --example grid3

    # Run tests
    python main.py test
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import numpy as np

from splashbp import (
    BPConfig,
    DenoiseOptions,
    SplashBPError,
    build_lattice_mrf,
    decode_beliefs,
    run_engine,
    run_synthetic,
    __version__,
)


def save_run_to_npz(filepath: str, run) -> None:
    """Save original, noisy and predicted images to a .npz archive."""
    np.savez(
        filepath,
        original=run.original,
        noisy=run.noisy,
        pred=run.result.image,
    )


def options_from_args(args) -> DenoiseOptions:
    return DenoiseOptions(
        rows=args.rows,
        cols=args.cols,
        colors=args.colors,
        sigma=args.sigma,
        lam=args.lam,
        smoothing=args.smoothing,
        bound=args.bound,
        damping=args.damping,
        pred_type=args.pred_type,
        splash_size=args.splash_size,
        ncpus=args.ncpus,
        max_updates=args.max_updates,
        timeout=args.timeout,
    )


def cmd_denoise(args):
    """Execute the denoise command."""
    try:
        options = options_from_args(args)
    except SplashBPError as e:
        print(f"Error: {e}")
        return 1

    print("Options:")
    for key, value in asdict(options).items():
        print(f"  {key:<12} {value}")

    print("\nCreating, corrupting and denoising a synthetic sunset...")
    try:
        run = run_synthetic(options, seed=args.seed)
    except SplashBPError as e:
        print(f"Error during denoising: {e}")
        return 1

    engine = run.result.engine
    print(f"\nResults:")
    print(f"  Runtime:     {engine.runtime:.3f} s")
    print(f"  Updates:     {engine.update_count}")
    print(f"  Efficiency:  {engine.updates_per_second:.0f} updates per second")
    print(f"  Converged:   {engine.converged}")
    if not engine.converged:
        print(f"  Stopped by:  {engine.stopped_by}")
    print(f"  Max residual {engine.max_residual:.3e}")
    print(f"  MSE noisy    {run.noisy_mse:.4f}")
    print(f"  MSE denoised {run.denoised_mse:.4f}")

    if args.output:
        save_run_to_npz(args.output, run)
        print(f"\nImages saved to: {args.output}")

    return 0


def demo_grid_3x3():
    """Demo: 3x3 grid with one pinned corner"""
    print("=" * 60)
    print("Demo: 3x3 Grid, corner pinned to state 0")
    print("=" * 60)

    # 0.5 is equidistant from both states, so only the corner carries evidence.
    intensity = np.full((3, 3), 0.5)
    intensity[0, 0] = 0.0

    model = build_lattice_mrf(intensity, num_states=2, sigma=0.1, smoothing="agreement", lam=10.0)
    config = BPConfig(edge_factor=model.edge_factor, bound=1e-10, damping=0.1)

    print("\nFactor Graph:")
    print("  X00 -- X01 -- X02")
    print("   |      |      |")
    print("  X10 -- X11 -- X12")
    print("   |      |      |")
    print("  X20 -- X21 -- X22")

    result = run_engine(model, config, max_updates=10000)
    print(f"\nConverged: {result.converged} after {result.update_count} updates")
    print(f"Max residual: {result.max_residual:.3e}")

    assignment = decode_beliefs(model, "map")
    print("\nMAP assignment:")
    for row in assignment.astype(int):
        print("  " + " ".join(str(x) for x in row))

    match = result.converged and bool(np.all(assignment == 0))
    print(f"\nAll pixels follow the corner: {match}")
    return match


def demo_sunset():
    """Demo: small noisy sunset"""
    print("=" * 60)
    print("Demo: 32x32 Sunset, 4 colors")
    print("=" * 60)

    options = DenoiseOptions(rows=32, cols=32, colors=4, sigma=1.0, lam=2.0, bound=1e-6, max_updates=200000)
    run = run_synthetic(options, seed=0)
    print(f"\nUpdates: {run.result.engine.update_count}")
    print(f"MSE noisy:    {run.noisy_mse:.4f}")
    print(f"MSE denoised: {run.denoised_mse:.4f}")

    match = run.denoised_mse < run.noisy_mse
    print(f"Denoising reduced the error: {match}")
    return match


def cmd_demo(args):
    """Execute the demo command."""
    demos = {
        "grid3": demo_grid_3x3,
        "sunset": demo_sunset,
    }

    if args.example == "all":
        results = []
        for name, func in demos.items():
            try:
                passed = func()
                results.append((name, passed))
            except SplashBPError as e:
                print(f"Error in {name}: {e}")
                results.append((name, False))
            print()

        print("=" * 60)
        print("Summary")
        print("=" * 60)
        all_passed = True
        for name, passed in results:
            status = "PASS" if passed else "FAIL"
            print(f"  {name}: {status}")
            if not passed:
                all_passed = False

        return 0 if all_passed else 1

    elif args.example in demos:
        try:
            passed = demos[args.example]()
            return 0 if passed else 1
        except SplashBPError as e:
            print(f"Error: {e}")
            return 1
    else:
        print(f"Unknown example: {args.example}")
        print(f"Available: {', '.join(demos.keys())}, all")
        return 1


def cmd_test(args):
    """Execute the test command."""
    import subprocess

    test_dir = Path(__file__).parent / "tests"
    if not test_dir.exists():
        print(f"Test directory not found: {test_dir}")
        return 1

    cmd = [sys.executable, "-m", "pytest", str(test_dir)]
    if args.verbose:
        cmd.append("-v")
    if args.coverage:
        cmd.extend(["--cov=splashbp", "--cov-report=term-missing"])

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def cmd_info(args):
    """Display system information."""
    import networkx
    import scipy

    print(f"splashbp v{__version__}")
    print("Residual Splash Belief Propagation for image denoising")
    print()
    print("Smoothing policies:")
    print("  agreement / square            - 0 for equal states, -lambda otherwise")
    print("  graduated-penalty / laplace   - -lambda * |i - j|")
    print()
    print("Prediction types:")
    print("  map - most probable state per pixel")
    print("  exp - expected state per pixel")
    print()
    print("Python:", sys.version.split()[0])
    print("NumPy:", np.__version__)
    print("SciPy:", scipy.__version__)
    print("NetworkX:", networkx.__version__)

    return 0


def main():
    defaults = DenoiseOptions()
    parser = argparse.ArgumentParser(
        prog="splashbp",
        description="splashbp: Residual Splash Belief Propagation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Denoise a synthetic image with 4 worker threads
  splashbp denoise --rows 100 --cols 100 --ncpus 4

  # Expected-value decoding, agreement smoothing
  splashbp denoise --pred-type exp --smoothing agreement

  # Run demos
  splashbp demo --example all

  # Run tests
  splashbp test -v
"""
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"splashbp {__version__}"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Denoise command
    dn = subparsers.add_parser("denoise", help="Denoise a synthetic sunset image")
    dn.add_argument("--rows", type=int, default=defaults.rows, help="Image rows")
    dn.add_argument("--cols", type=int, default=defaults.cols, help="Image columns")
    dn.add_argument("--colors", type=int, default=defaults.colors, help="Number of colors (states)")
    dn.add_argument("--sigma", type=float, default=defaults.sigma, help="Standard deviation of the noise")
    dn.add_argument("--lambda", dest="lam", type=float, default=defaults.lam,
                    help="Smoothness parameter (larger => smoother)")
    dn.add_argument("--smoothing", default=defaults.smoothing,
                    help="One of agreement, square, graduated-penalty, laplace")
    dn.add_argument("--bound", type=float, default=defaults.bound, help="Residual termination bound")
    dn.add_argument("--damping", type=float, default=defaults.damping, help="Amount of message damping")
    dn.add_argument("--pred-type", default=defaults.pred_type, help="Prediction type {map, exp}")
    dn.add_argument("--splash-size", type=int, default=defaults.splash_size,
                    help="Splash size (0 schedules single vertices)")
    dn.add_argument("--ncpus", type=int, default=defaults.ncpus, help="Number of worker threads")
    dn.add_argument("--max-updates", type=int, default=None, help="Cap on the number of updates")
    dn.add_argument("--timeout", type=float, default=None, help="Cap on wall time in seconds")
    dn.add_argument("--seed", type=int, default=None, help="Seed for the noise generator")
    dn.add_argument("--output", "-o", type=str, help="Output .npz file")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demonstration examples")
    demo_parser.add_argument(
        "--example", "-e",
        choices=["grid3", "sunset", "all"],
        default="all",
        help="Which example to run (default: all)"
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Run test suite")
    test_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    test_parser.add_argument("--coverage", "-c", action="store_true", help="With coverage")

    # Info command
    subparsers.add_parser("info", help="Show system information")

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "denoise":
        return cmd_denoise(args)
    elif args.command == "demo":
        return cmd_demo(args)
    elif args.command == "test":
        return cmd_test(args)
    elif args.command == "info":
        return cmd_info(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
