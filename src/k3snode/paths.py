from __future__ import annotations

import os
import pathlib
import subprocess


def top() -> pathlib.Path:
    """Checkout root; only used to place the default cache directory."""
    if "K3SNODE_TOP" in os.environ:
        return pathlib.Path(os.environ["K3SNODE_TOP"])

    return pathlib.Path(
        subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],  # noqa: S607
            text=True,
            capture_output=True,
            check=False,
        ).stdout.strip()
    )


class Paths:
    @property
    def root(self) -> pathlib.Path:
        """Return the node configuration directory.

        Set via the K3SNODE_ROOT environment variable, both for the CLI and
        for Pulumi stacks.

        Raises:
            RuntimeError: If K3SNODE_ROOT is not set in the environment

        """
        if "K3SNODE_ROOT" not in os.environ:
            msg = "K3SNODE_ROOT environment variable not set."
            raise RuntimeError(msg)

        return pathlib.Path(os.environ["K3SNODE_ROOT"])

    @property
    def cache(self) -> pathlib.Path:
        if "K3SNODE_CACHE" in os.environ:
            return pathlib.Path(os.environ["K3SNODE_CACHE"])

        return top() / ".local"

    @property
    def nodes(self) -> pathlib.Path:
        return self.root / "__nodes__"

    @property
    def rendered(self) -> pathlib.Path:
        return self.cache / "rendered"
