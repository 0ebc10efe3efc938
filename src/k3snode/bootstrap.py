"""First-boot bootstrap script for a single K3s node.

The script is handed to the instance as user-data and run once by cloud-init.
It is a linear sequence of named steps under ``set -e``: the first failing
command aborts the run and nothing is rolled back. Only the namespace and
``kubectl apply`` steps are safe to re-run. :meth:`BootstrapScript.render`
accepts ``start_at`` so an operator can render the remaining steps after fixing
whatever broke.
"""

from __future__ import annotations

import dataclasses
import shlex
import textwrap

import k3snode
import k3snode.helpers
import k3snode.junkdrawer
import k3snode.node
import k3snode.storage

# resolved by bash on the node; the heredocs carrying manifests are unquoted
BOOT_HOSTNAME = "$(hostname)"

FLOWLB_PLACEHOLDER_CONF = """\
# FlowLB configuration will be managed by K8s
# This is a placeholder
"""


@dataclasses.dataclass(frozen=True)
class BootstrapStep:
    message: str
    lines: list[str]

    def render(self) -> str:
        return "\n".join([f'echo "{self.message}"', *self.lines])


def heredoc(command: str, body: str, *, expand: bool = False) -> str:
    """Feed ``body`` to ``command`` on stdin via a bash heredoc.

    Unless ``expand`` is set the delimiter is quoted, so bash leaves ``$``
    references in the body alone.
    """
    delimiter = "EOF" if expand else "'EOF'"
    if not body.endswith("\n"):
        body += "\n"

    if "\nEOF\n" in f"\n{body}":
        msg = "heredoc body must not contain a bare EOF line"
        raise ValueError(msg)

    return f"cat <<{delimiter} {command}\n{body}EOF"


def kubectl_apply(manifest: k3snode.storage.Manifest) -> str:
    body = k3snode.storage.dump(manifest)
    if "`" in body:
        msg = f"manifest {manifest['metadata']['name']!r} contains a backtick"
        raise ValueError(msg)

    return heredoc("| kubectl apply -f -", body, expand=True)


class BootstrapScript:
    cfg: k3snode.node.K3sNodeConfig
    steps: list[tuple[str, BootstrapStep]]

    def __init__(self, cfg: k3snode.node.K3sNodeConfig):
        self.cfg = cfg
        self.steps = []

        self._define_system_steps()
        self._define_k3s_steps()
        self._define_cluster_steps()
        self._define_operator_steps()

    @property
    def step_names(self) -> list[str]:
        return [name for name, _ in self.steps]

    def add_step(self, name: str, message: str, lines: list[str]) -> None:
        if name in self.step_names:
            msg = f"duplicate bootstrap step {name!r}"
            raise ValueError(msg)

        self.steps.append((name, BootstrapStep(message=message, lines=lines)))

    def _define_system_steps(self) -> None:
        user = self.cfg.node_user

        self.add_step(
            "update-system",
            "📦 Updating system packages...",
            ["apt-get update", "apt-get upgrade -y"],
        )
        self.add_step(
            "install-packages",
            "🔧 Installing required packages...",
            [shlex.join(["apt-get", "install", "-y", *self.cfg.packages])],
        )
        self.add_step(
            "configure-docker",
            "🐳 Configuring Docker...",
            [
                "systemctl enable docker",
                "systemctl start docker",
                f"usermod -aG docker {user}",
            ],
        )
        self.add_step(
            "create-storage-directories",
            "📁 Creating storage directories...",
            [
                *[f"mkdir -p {d}" for d in k3snode.storage.data_directories(self.cfg.data_root)],
                f"chown -R {user}:{user} {self.cfg.data_root}",
            ],
        )

    def _define_k3s_steps(self) -> None:
        user = self.cfg.node_user
        exec_flags = " ".join(f"--disable {component}" for component in self.cfg.k3s_disabled_components)

        self.add_step(
            "install-k3s",
            "☸️ Installing K3s...",
            [f'curl -sfL {k3snode.K3S_INSTALL_URL} | INSTALL_K3S_EXEC="{exec_flags}" sh -'],
        )
        self.add_step(
            "wait-for-k3s",
            "⏳ Waiting for K3s to be ready...",
            [f"sleep {self.cfg.k3s_ready_wait_seconds}"],
        )
        self.add_step(
            "configure-kubeconfig",
            "🔑 Configuring kubectl access...",
            [
                f"mkdir -p {self.cfg.home_dir}/.kube",
                f"cp {k3snode.K3S_KUBECONFIG} {self.cfg.kubeconfig_path}",
                f"chown {user}:{user} {self.cfg.kubeconfig_path}",
                f"chmod 600 {self.cfg.kubeconfig_path}",
            ],
        )

    def _define_cluster_steps(self) -> None:
        self.add_step(
            "create-namespaces",
            "🏷️ Creating namespaces...",
            [
                f"kubectl create namespace {self.cfg.namespace(environment)} || true"
                for environment in k3snode.Environments
            ],
        )
        self.add_step(
            "create-storage-class",
            "💾 Creating local storage class...",
            [kubectl_apply(k3snode.storage.storage_class_manifest())],
        )
        self.add_step(
            "create-persistent-volumes",
            "📦 Creating persistent volumes...",
            [
                kubectl_apply(manifest)
                for manifest in k3snode.storage.persistent_volume_manifests(
                    BOOT_HOSTNAME,
                    self.cfg.volume_kinds,
                    self.cfg.data_root,
                )
            ],
        )

    def _define_operator_steps(self) -> None:
        user = self.cfg.node_user
        home = self.cfg.home_dir
        release = k3snode.KUBECTL_RELEASE_URL

        self.add_step(
            "install-kubectl",
            "🔧 Installing kubectl...",
            [
                f'curl -LO "{release}/$(curl -L -s {release}/stable.txt)/bin/linux/amd64/kubectl"',
                "install -o root -g root -m 0755 kubectl /usr/local/bin/kubectl",
            ],
        )

        scripts = k3snode.helpers.management_scripts(self.cfg.k8s_manifests_dir, self.cfg.namespace_prefix)
        self.add_step(
            "install-management-scripts",
            "📝 Creating management scripts...",
            [
                *[heredoc(f"> {home}/{name}", body) for name, body in scripts.items()],
                f"chmod +x {home}/*.sh",
                f"chown {user}:{user} {home}/*.sh",
            ],
        )
        self.add_step(
            "create-docker-network",
            "🌐 Creating Docker network for FlowLB...",
            [f"docker network create {self.cfg.docker_network} || true"],
        )

        profile = [f"export KUBECONFIG={self.cfg.kubeconfig_path}"]
        profile.extend(f"alias {alias}={shlex.quote(command)}" for alias, command in k3snode.KUBECTL_ALIASES.items())
        self.add_step(
            "configure-shell-environment",
            "🔧 Setting up environment...",
            [heredoc(f">> {home}/.bashrc", "\n".join(profile))],
        )

        vhost_dir = k3snode.storage.data_directory(k3snode.Environments.prod, "flowlb-vhost", self.cfg.data_root)
        self.add_step(
            "write-flowlb-placeholder",
            "🔧 Creating FlowLB configuration...",
            [
                f"mkdir -p {vhost_dir}",
                heredoc(f"> {vhost_dir}/default.conf", FLOWLB_PLACEHOLDER_CONF),
                f"chown -R {user}:{user} {vhost_dir}",
            ],
        )

        namespaces = ", ".join(self.cfg.namespace(environment) for environment in k3snode.Environments)
        summary = [
            "",
            "📋 Summary:",
            "- K3s cluster: Ready",
            f"- Namespaces: {namespaces}",
            "- Storage: Local persistent volumes created",
            "- FlowLB: Ready to deploy (replaces cert-manager)",
            f"- Management scripts: {home}/*.sh",
            "",
            "💡 Useful commands:",
            f"- sudo {home}/{k3snode.helpers.STATUS_SCRIPT}",
            f"- sudo {home}/{k3snode.helpers.LOGS_SCRIPT} [env] [component]",
            f"- sudo {home}/{k3snode.helpers.DEPLOY_SCRIPT} [env]",
        ]
        self.add_step(
            "summary",
            "✅ K3s initialization completed!",
            [f"echo {shlex.quote(line)}" for line in summary],
        )

    def render(self, start_at: str | None = None) -> str:
        steps = self.steps
        if start_at is not None:
            if start_at not in self.step_names:
                msg = f"unknown bootstrap step {start_at!r}; valid steps are: {', '.join(self.step_names)}"
                raise ValueError(msg)
            steps = k3snode.junkdrawer.filter_steps_after_start(start_at, steps)

        header = textwrap.dedent(
            f"""\
            #!/bin/bash
            # K3s single-node bootstrap for {self.cfg.true_name}-{self.cfg.environment}
            # SSL is terminated by FlowLB instead of cert-manager

            set -e

            DOMAIN_NAME={shlex.quote(self.cfg.domain)}
            ENVIRONMENT={shlex.quote(self.cfg.environment)}

            echo "🚀 Starting K3s initialization for ${{ENVIRONMENT}} environment..."
            echo "📍 Domain: ${{DOMAIN_NAME}}"
            """
        )

        return header + "\n" + "\n\n".join(step.render() for _, step in steps) + "\n"


def render_user_data(cfg: k3snode.node.K3sNodeConfig, start_at: str | None = None) -> str:
    return BootstrapScript(cfg).render(start_at=start_at)
