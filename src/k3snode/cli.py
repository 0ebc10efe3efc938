from __future__ import annotations

import functools
import json
import subprocess
import typing

import click

import k3snode
import k3snode.aws_instances
import k3snode.bootstrap
import k3snode.helpers
import k3snode.junkdrawer
import k3snode.node
import k3snode.paths
import k3snode.shext
import k3snode.storage

ENVIRONMENT_CHOICE = click.Choice([str(e) for e in k3snode.Environments])


def kubectl_errors(fn: typing.Callable) -> typing.Callable:
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or str(e)
            raise click.ClickException(detail) from e
        except FileNotFoundError as e:
            msg = f"{e.filename} not found on PATH"
            raise click.ClickException(msg) from e

    return wrapper


def load_node(name: str) -> k3snode.node.K3sNode:
    try:
        return k3snode.node.K3sNode(name)
    except (ValueError, RuntimeError) as e:
        raise click.ClickException(str(e)) from e


def run_sections(sections: list[k3snode.helpers.Section], env: dict[str, str]) -> None:
    for i, (title, command) in enumerate(sections):
        if i > 0:
            click.echo()
        click.secho(f"=== {title} ===", bold=True)
        click.echo(k3snode.shext.sh(command, env=env).stdout, nl=False)


@click.group()
@click.version_option(package_name="k3snode")
def cli():
    """Provision and operate single-node K3s clusters."""


@cli.command("render-userdata")
@click.argument("name")
@click.option("--start-at", help="Render only the steps from this one onwards.")
@click.option("--list-steps", is_flag=True, help="List the bootstrap steps and exit.")
@click.option("--write", is_flag=True, help="Also write the script to the cache directory.")
def render_userdata(name: str, start_at: str | None, list_steps: bool, write: bool):
    """Print the first-boot bootstrap script for node NAME."""
    node = load_node(name)
    script = k3snode.bootstrap.BootstrapScript(node.cfg)

    if list_steps:
        k3snode.junkdrawer.print_steps(script.steps)
        return

    try:
        rendered = script.render(start_at=start_at)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--start-at") from e

    if write:
        out = k3snode.paths.Paths().rendered / f"{node.compound_name}.sh"
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rendered)
        click.secho(f"wrote {out}", fg="green", err=True)

    click.echo(rendered, nl=False)


@cli.command()
@click.argument("name")
@click.option(
    "--hostname",
    default=k3snode.bootstrap.BOOT_HOSTNAME,
    show_default=True,
    help="Node hostname for PV affinity.",
)
def manifests(name: str, hostname: str):
    """Print the namespace, StorageClass and PersistentVolume manifests for node NAME."""
    node = load_node(name)
    click.echo(k3snode.storage.dump_all(k3snode.storage.cluster_manifests(node.cfg, hostname)), nl=False)


@cli.command()
@click.option("--kubeconfig", envvar="KUBECONFIG", help="Path to the node kubeconfig.")
@kubectl_errors
def status(kubeconfig: str | None):
    """Show nodes, namespaces, pods, persistent volumes and services."""
    run_sections(k3snode.helpers.status_sections(), k3snode.shext.kube_env(kubeconfig))


@cli.command()
@click.argument("environment", type=ENVIRONMENT_CHOICE, default=str(k3snode.helpers.DEFAULT_LOGS_ENVIRONMENT))
@click.argument("component", default=k3snode.helpers.DEFAULT_LOGS_COMPONENT)
@click.option("--namespace-prefix", default=k3snode.DEFAULT_NAMESPACE_PREFIX, show_default=True)
@click.option("--kubeconfig", envvar="KUBECONFIG", help="Path to the node kubeconfig.")
@kubectl_errors
def logs(environment: str, component: str, namespace_prefix: str, kubeconfig: str | None):
    """Show pod logs in ENVIRONMENT; follows COMPONENT's logs unless it is 'all'."""
    env = k3snode.shext.kube_env(kubeconfig)
    namespace = k3snode.namespace_name(environment, namespace_prefix)
    sections = k3snode.helpers.logs_sections(namespace, component)

    if component == k3snode.helpers.DEFAULT_LOGS_COMPONENT:
        run_sections(sections, env)
        return

    _, command = sections[0]
    k3snode.shext.sh(command, env=env, capture_output=False)


@cli.command()
@click.argument("environment", type=ENVIRONMENT_CHOICE, default=str(k3snode.helpers.DEFAULT_DEPLOY_ENVIRONMENT))
@click.option(
    "--manifests-dir",
    default="k8s-manifests",
    show_default=True,
    type=click.Path(file_okay=False),
    help="Directory holding the kustomize overlays.",
)
@click.option("--namespace-prefix", default=k3snode.DEFAULT_NAMESPACE_PREFIX, show_default=True)
@click.option("--kubeconfig", envvar="KUBECONFIG", help="Path to the node kubeconfig.")
@kubectl_errors
def deploy(environment: str, manifests_dir: str, namespace_prefix: str, kubeconfig: str | None):
    """Apply the kustomize overlay for ENVIRONMENT and wait for the rollouts."""
    env = k3snode.shext.kube_env(kubeconfig)
    namespace = k3snode.namespace_name(environment, namespace_prefix)

    click.echo(f"Deploying to {environment} environment...")
    for command in k3snode.helpers.deploy_commands(namespace, f"{manifests_dir}/overlays/{environment}"):
        click.echo(k3snode.shext.sh(command, env=env).stdout, nl=False)
    click.secho("Deployment completed!", fg="green")


@cli.command()
@click.argument("name")
@click.option("--hostname", help="Expected node hostname; affinity is not checked when omitted.")
@click.option("--kubeconfig", envvar="KUBECONFIG", help="Path to the node kubeconfig.")
@kubectl_errors
def verify(name: str, hostname: str | None, kubeconfig: str | None):
    """Check that the cluster has the persistent volumes node NAME declares."""
    node = load_node(name)
    pv_list = k3snode.shext.shj(["kubectl", "get", "pv", "-o", "json"], env=k3snode.shext.kube_env(kubeconfig))
    live = {item["metadata"]["name"]: item for item in pv_list["items"]}

    problems = []
    for expected in k3snode.storage.persistent_volume_manifests(
        hostname or k3snode.bootstrap.BOOT_HOSTNAME, node.cfg.volume_kinds, node.cfg.data_root
    ):
        pv_name = expected["metadata"]["name"]
        if pv_name not in live:
            problems.append(f"{pv_name}: missing")
            continue

        spec = live[pv_name]["spec"]
        if spec.get("capacity", {}).get("storage") != expected["spec"]["capacity"]["storage"]:
            problems.append(f"{pv_name}: capacity {spec.get('capacity', {}).get('storage')!r}")
        if spec.get("local", {}).get("path") != expected["spec"]["local"]["path"]:
            problems.append(f"{pv_name}: path {spec.get('local', {}).get('path')!r}")
        if hostname and spec.get("nodeAffinity") != expected["spec"]["nodeAffinity"]:
            problems.append(f"{pv_name}: node affinity does not pin {hostname!r}")

    if problems:
        for problem in problems:
            click.secho(problem, fg="red", err=True)
        msg = f"{len(problems)} persistent volume problem(s) found"
        raise click.ClickException(msg)

    click.secho("all persistent volumes present", fg="green")


@cli.command()
@click.argument("name")
def info(name: str):
    """Show the EC2 instance backing node NAME."""
    node = load_node(name)

    try:
        instance = k3snode.aws_instances.find_node_instance(
            node.compound_name,
            node.cfg.region,
            key_name=node.cfg.key_name,
            user=node.cfg.node_user,
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if instance is None:
        msg = f"no instance found for {node.compound_name!r} in {node.cfg.region}"
        raise click.ClickException(msg)

    click.echo(json.dumps(instance, indent=2))


@cli.command()
def whoami():
    """Show the AWS caller identity."""
    identity, ok = k3snode.aws_whoami()
    if not ok:
        msg = "unable to determine AWS caller identity"
        raise click.ClickException(msg)

    click.echo(json.dumps({key: identity[key] for key in ("UserId", "Account", "Arn")}, indent=2))


if __name__ == "__main__":
    cli()
