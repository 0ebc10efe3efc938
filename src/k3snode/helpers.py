"""Operator commands for a bootstrapped node.

The same command lists back two surfaces: the ``k3s-*.sh`` scripts written
into the node user's home by the bootstrap, and the ``k3snode status|logs|deploy``
CLI commands that run kubectl from a workstation.
"""

from __future__ import annotations

import re
import shlex
import textwrap

import k3snode

Command = list[str]
Section = tuple[str, Command]

STATUS_SCRIPT = "k3s-status.sh"
LOGS_SCRIPT = "k3s-logs.sh"
DEPLOY_SCRIPT = "k3s-deploy.sh"

DEFAULT_LOGS_ENVIRONMENT = k3snode.Environments.prod
DEFAULT_LOGS_COMPONENT = "all"
DEFAULT_DEPLOY_ENVIRONMENT = k3snode.Environments.dev

# components whose logs are shown when no component is given
SUMMARY_LOG_COMPONENTS = (("FlowLB", "flowlb"), ("Drupal", "drupal"))

_SAFE_TOKEN = re.compile(r"^[\w@%+=:,./-]+$")


def status_sections() -> list[Section]:
    return [
        ("K3s Cluster Status", ["kubectl", "get", "nodes"]),
        ("Namespaces", ["kubectl", "get", "namespaces"]),
        ("All Pods", ["kubectl", "get", "pods", "-A"]),
        ("Persistent Volumes", ["kubectl", "get", "pv"]),
        ("Services", ["kubectl", "get", "svc", "-A"]),
    ]


def logs_sections(
    namespace: str,
    component: str = DEFAULT_LOGS_COMPONENT,
) -> list[Section]:
    if component == DEFAULT_LOGS_COMPONENT:
        sections: list[Section] = [
            (f"All pods in {namespace}", ["kubectl", "get", "pods", "-n", namespace]),
        ]
        for title, app in SUMMARY_LOG_COMPONENTS:
            sections.append(
                (f"{title} logs", ["kubectl", "logs", "-n", namespace, "-l", f"app={app}", "--tail=50"]),
            )
        return sections

    return [
        (
            f"{component} logs in {namespace}",
            ["kubectl", "logs", "-n", namespace, "-l", f"app={component}", "--tail=100", "-f"],
        )
    ]


def deploy_commands(namespace: str, overlay_dir: str) -> list[Command]:
    commands = [["kubectl", "apply", "-k", overlay_dir]]
    commands.extend(
        ["kubectl", "rollout", "status", f"deployment/{deployment}", "-n", namespace]
        for deployment in k3snode.DEPLOYMENTS
    )
    return commands


def shell_join(command: Command) -> str:
    """Join a command for a bash script, leaving ``$VAR`` references expandable."""
    parts = []
    for token in command:
        if _SAFE_TOKEN.match(token):
            parts.append(token)
        elif "$" in token and not any(c in token for c in '"`\\'):
            parts.append(f'"{token}"')
        else:
            parts.append(shlex.quote(token))
    return " ".join(parts)


def _echo_sections(sections: list[Section]) -> list[str]:
    lines = []
    for i, (title, command) in enumerate(sections):
        if i > 0:
            lines.append('echo ""')
        lines.append(f'echo "=== {title} ==="')
        lines.append(shell_join(command))
    return lines


def status_script() -> str:
    return "\n".join(["#!/bin/bash", *_echo_sections(status_sections())]) + "\n"


def logs_script(namespace_prefix: str = k3snode.DEFAULT_NAMESPACE_PREFIX) -> str:
    namespace = f"{namespace_prefix}-$ENV"
    summary = textwrap.indent("\n".join(_echo_sections(logs_sections(namespace))), "    ")
    _, follow = logs_sections(namespace, "$COMPONENT")[0]

    return (
        "\n".join(
            [
                "#!/bin/bash",
                f"ENV=${{1:-{DEFAULT_LOGS_ENVIRONMENT}}}",
                f"COMPONENT=${{2:-{DEFAULT_LOGS_COMPONENT}}}",
                "",
                f'if [ "$COMPONENT" = "{DEFAULT_LOGS_COMPONENT}" ]; then',
                summary,
                "else",
                f"    {shell_join(follow)}",
                "fi",
            ]
        )
        + "\n"
    )


def deploy_script(
    manifests_dir: str,
    namespace_prefix: str = k3snode.DEFAULT_NAMESPACE_PREFIX,
) -> str:
    commands = deploy_commands(f"{namespace_prefix}-$ENV", f"{manifests_dir}/overlays/$ENV")

    return (
        "\n".join(
            [
                "#!/bin/bash",
                f"ENV=${{1:-{DEFAULT_DEPLOY_ENVIRONMENT}}}",
                'echo "Deploying to $ENV environment..."',
                *[shell_join(command) for command in commands],
                'echo "Deployment completed!"',
            ]
        )
        + "\n"
    )


def management_scripts(manifests_dir: str, namespace_prefix: str = k3snode.DEFAULT_NAMESPACE_PREFIX) -> dict[str, str]:
    return {
        STATUS_SCRIPT: status_script(),
        LOGS_SCRIPT: logs_script(namespace_prefix),
        DEPLOY_SCRIPT: deploy_script(manifests_dir, namespace_prefix),
    }
