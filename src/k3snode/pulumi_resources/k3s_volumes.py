import pathlib

import pulumi
import pulumi_kubernetes as kubernetes

import k3snode
import k3snode.node
import k3snode.storage


class K3sVolumes(pulumi.ComponentResource):
    """
    Declares the node's namespaces, the local StorageClass and the local
    PersistentVolumes against a running cluster, as an alternative to the
    ``kubectl apply`` calls in the bootstrap script.

    The PersistentVolumes are pinned to ``node_hostname``, which has to match
    the node's ``kubernetes.io/hostname`` label.
    """

    node: k3snode.node.K3sNode
    provider: kubernetes.Provider | None
    namespaces: dict[str, kubernetes.core.v1.Namespace]
    storage_class: kubernetes.storage.v1.StorageClass
    persistent_volumes: dict[str, kubernetes.core.v1.PersistentVolume]

    @classmethod
    def autoload(cls) -> "K3sVolumes":
        return cls(node=k3snode.node.K3sNode(pulumi.get_stack()))

    def __init__(
        self,
        node: k3snode.node.K3sNode,
        provider: kubernetes.Provider | None = None,
        *args,
        **kwargs,
    ):
        if not node.cfg.node_hostname:
            msg = f"node_hostname must be set to manage volumes of {node.compound_name!r}"
            raise ValueError(msg)

        super().__init__(
            f"k3snode:{self.__class__.__name__}",
            f"{node.compound_name}-volumes",
            *args,
            **kwargs,
        )

        self.node = node
        self.provider = provider or self._define_provider()
        self.labels = {str(k3snode.TagKeys.K3SNODE_MANAGED_BY): __name__}

        self._define_namespaces()
        self._define_storage_class()
        self._define_persistent_volumes()

        self.register_outputs(
            {
                "namespaces": sorted(self.namespaces),
                "persistent_volumes": sorted(self.persistent_volumes),
            }
        )

    def _define_provider(self) -> kubernetes.Provider | None:
        if not self.node.cfg.kubeconfig:
            pulumi.log.warn(f"kubeconfig not set for {self.node.compound_name}, using the ambient kube context")
            return None

        return kubernetes.Provider(
            f"{self.node.compound_name}-k3s",
            kubeconfig=pathlib.Path(self.node.cfg.kubeconfig).expanduser().read_text(),
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _opts(self, **kwargs) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(parent=self, provider=self.provider, **kwargs)

    def _define_namespaces(self):
        self.namespaces = {}
        for environment in k3snode.Environments:
            name = self.node.cfg.namespace(environment)
            self.namespaces[name] = kubernetes.core.v1.Namespace(
                f"{self.node.compound_name}-{name}",
                metadata=kubernetes.meta.v1.ObjectMetaArgs(name=name, labels=self.labels),
                opts=self._opts(),
            )

    def _define_storage_class(self):
        manifest = k3snode.storage.storage_class_manifest()

        self.storage_class = kubernetes.storage.v1.StorageClass(
            f"{self.node.compound_name}-{manifest['metadata']['name']}",
            metadata=kubernetes.meta.v1.ObjectMetaArgs(name=manifest["metadata"]["name"], labels=self.labels),
            provisioner=manifest["provisioner"],
            volume_binding_mode=manifest["volumeBindingMode"],
            allow_volume_expansion=manifest["allowVolumeExpansion"],
            opts=self._opts(),
        )

    def _define_persistent_volumes(self):
        self.persistent_volumes = {}
        for manifest in k3snode.storage.persistent_volume_manifests(
            self.node.cfg.node_hostname,
            self.node.cfg.volume_kinds,
            self.node.cfg.data_root,
        ):
            name = manifest["metadata"]["name"]
            spec = manifest["spec"]
            term = spec["nodeAffinity"]["required"]["nodeSelectorTerms"][0]["matchExpressions"][0]

            self.persistent_volumes[name] = kubernetes.core.v1.PersistentVolume(
                f"{self.node.compound_name}-{name}",
                metadata=kubernetes.meta.v1.ObjectMetaArgs(name=name, labels=self.labels),
                spec=kubernetes.core.v1.PersistentVolumeSpecArgs(
                    capacity=spec["capacity"],
                    access_modes=spec["accessModes"],
                    persistent_volume_reclaim_policy=spec["persistentVolumeReclaimPolicy"],
                    storage_class_name=spec["storageClassName"],
                    local=kubernetes.core.v1.LocalVolumeSourceArgs(path=spec["local"]["path"]),
                    node_affinity=kubernetes.core.v1.VolumeNodeAffinityArgs(
                        required=kubernetes.core.v1.NodeSelectorArgs(
                            node_selector_terms=[
                                kubernetes.core.v1.NodeSelectorTermArgs(
                                    match_expressions=[
                                        kubernetes.core.v1.NodeSelectorRequirementArgs(
                                            key=term["key"],
                                            operator=term["operator"],
                                            values=term["values"],
                                        )
                                    ]
                                )
                            ]
                        )
                    ),
                ),
                opts=self._opts(depends_on=[self.storage_class]),
            )
