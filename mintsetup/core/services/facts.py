"""
Host facts — what ``when`` conditions are evaluated against.

    gpu       nvidia | amd | intel | none   (from --gpu, or lspci)
    desktop   cinnamon | <first XDG_CURRENT_DESKTOP entry> | unknown
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping

from mintsetup.adapters.shell.command import CommandRunner
from mintsetup.core.errors import MintSetupError

logger = logging.getLogger(__name__)

GPU_MODES = ("auto", "nvidia", "amd", "intel", "none")

# Unknown vendors get the Mesa stack, which serves AMD and Intel alike
FALLBACK_GPU = "amd"

_DISPLAY_CLASS = re.compile(r"VGA|3D|Display", re.IGNORECASE)


def parse_lspci_vendor(output: str) -> str | None:
    """GPU vendor from ``lspci -nn`` output, or None if unrecognised.

    Hybrid laptops list an Intel iGPU next to a discrete card; a
    discrete vendor anywhere in the display lines wins.
    """
    display = " ".join(ln.upper() for ln in output.splitlines() if _DISPLAY_CLASS.search(ln))
    if "NVIDIA" in display or "[10DE:" in display:
        return "nvidia"
    if re.search(r"\bAMD\b|\bATI\b|\[1002:", display):
        return "amd"
    if "INTEL" in display or "[8086:" in display:
        return "intel"
    return None


def detect_gpu(runner: CommandRunner) -> str:
    try:
        result = runner.run(["lspci", "-nn"], timeout=10, env={"LC_ALL": "C"})
    except MintSetupError as e:
        logger.warning("GPU detection failed (%s); defaulting to %s", e, FALLBACK_GPU)
        return FALLBACK_GPU

    vendor = parse_lspci_vendor(result.stdout)
    if vendor is None:
        logger.warning("Could not determine GPU vendor; defaulting to Mesa stack (%s)", FALLBACK_GPU)
        return FALLBACK_GPU
    logger.info("Auto-detected GPU: %s", vendor)
    return vendor


def detect_desktop(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    current = env.get("XDG_CURRENT_DESKTOP", "")
    if "cinnamon" in current.lower():
        return "cinnamon"
    first = current.split(":")[0].strip().lower()
    return first or "unknown"


def detect_facts(
    gpu_mode: str = "auto",
    runner: CommandRunner | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Collect host facts.

    Raises:
        ValueError: unknown ``gpu_mode``.
    """
    if gpu_mode not in GPU_MODES:
        raise ValueError(f"Unknown GPU mode '{gpu_mode}' (expected one of {', '.join(GPU_MODES)})")

    gpu = gpu_mode
    if gpu_mode == "auto":
        gpu = detect_gpu(runner or CommandRunner())

    return {"gpu": gpu, "desktop": detect_desktop(environ)}
