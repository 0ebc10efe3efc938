from __future__ import annotations

import functools
import json
import os
import subprocess

sh = functools.partial(
    subprocess.run,
    check=True,
    capture_output=True,
    text=True,
)


def shj(*args, **kwargs):
    return json.loads(sh(*args, **kwargs).stdout)


def kube_env(kubeconfig: str | None = None) -> dict[str, str]:
    env = os.environ.copy()
    if kubeconfig:
        env["KUBECONFIG"] = kubeconfig

    return env
