"""
deploy k3s on the local host and optionally an ingress controller and
MetalLB via the API server
"""
import logging
import time

import urllib3
import yaml

from kubernetes import client as k8sclient
from kubernetes.client.rest import ApiException
from kubernetes.config import kube_config
from kubernetes.config.config_exception import ConfigException

from hostkit import (K3S_INSTALL_URL, K3S_KUBECONFIG, INGRESS_NGINX_VERSION,
                     METALLB_VERSION)
from hostkit.cli import Aborted, report
from hostkit.host.system import CommandFailed, target_user
from hostkit.util.logger import Logger
from hostkit.util.net import download, validate_address_pool
from hostkit.util.util import retry

LOGGER = Logger(__name__)

INGRESS_NGINX_MANIFEST = (
    "https://raw.githubusercontent.com/kubernetes/ingress-nginx/"
    f"controller-{INGRESS_NGINX_VERSION}/deploy/static/provider/cloud/"
    "deploy.yaml")
METALLB_MANIFEST = (
    "https://raw.githubusercontent.com/metallb/metallb/"
    f"{METALLB_VERSION}/config/manifests/metallb-native.yaml")

INGRESS_CHOICES = [("traefik", "Traefik (k3s built-in)"),
                   ("ingress-nginx", "ingress-nginx")]

# (namespace, service) checked in this order for an external IP
INGRESS_SERVICES = [("ingress-nginx", "ingress-nginx-controller"),
                    ("kube-system", "traefik")]

METALLB_NAMESPACE = "metallb-system"
METALLB_POOL_NAME = "default"


class ClusterNotReady(Exception):
    """Raised when the API server does not answer after installation"""


def install_flags(ingress):
    """Return the INSTALL_K3S_EXEC flags for the chosen ingress.

    The kubeconfig is made world readable so kubectl works without root.
    ingress-nginx replaces the bundled Traefik.
    """
    flags = ["--write-kubeconfig-mode", "644"]
    if ingress == "ingress-nginx":
        flags = ["--disable", "traefik"] + flags
    return " ".join(flags)


def metallb_pool_resources(pool, name=METALLB_POOL_NAME,
                           namespace=METALLB_NAMESPACE):
    """
    The MetalLB custom resources announcing ``pool`` in layer 2 mode

    Args:
        pool (str): a CIDR, an address range or a single address
        name (str): name of the IPAddressPool and L2Advertisement
        namespace (str): the MetalLB namespace

    Returns:
        list of resource dicts
    """
    metadata = {"name": name, "namespace": namespace}
    return [
        {"apiVersion": "metallb.io/v1beta1",
         "kind": "IPAddressPool",
         "metadata": dict(metadata),
         "spec": {"addresses": [pool]}},
        {"apiVersion": "metallb.io/v1beta1",
         "kind": "L2Advertisement",
         "metadata": dict(metadata),
         "spec": {"ipAddressPools": [name]}},
    ]


class K3S:
    """Interact with the k3s cluster of this host.

    kubectl is run as ``k3s kubectl`` if the k3s binary is present, else a
    standalone ``kubectl`` is pointed at the k3s kubeconfig. Structured
    queries use the Kubernetes API client.

    Args:
        shell (:class:`hostkit.host.system.Shell`): runs kubectl
        kubeconfig (str): path of the kubeconfig written by k3s
        api: a ``CoreV1Api`` instance, created from ``kubeconfig`` on first
            use if not given
    """

    def __init__(self, shell, kubeconfig=K3S_KUBECONFIG, api=None):
        self.shell = shell
        self.kubeconfig = kubeconfig
        self._api = api

    @property
    def api(self):
        """the CoreV1Api, loading the kubeconfig on first use"""
        if self._api is None:
            kube_config.load_kube_config(config_file=self.kubeconfig)
            self._api = k8sclient.CoreV1Api()
        return self._api

    def kubectl_argv(self, args):
        """
        Raises:
            CommandFailed if neither k3s nor kubectl are installed.
        """
        if self.shell.which("k3s"):
            return ["k3s", "kubectl"] + list(args)
        if self.shell.which("kubectl"):
            return ["kubectl", "--kubeconfig", self.kubeconfig] + list(args)
        raise CommandFailed(["kubectl"] + list(args), 127,
                            "kubectl not available")

    def kubectl(self, args, **kwargs):
        """run kubectl, see :meth:`hostkit.host.system.Shell.run`"""
        return self.shell.run(self.kubectl_argv(args), **kwargs)

    def try_kubectl(self, args, **kwargs):
        """run kubectl, returning False instead of raising on failure"""
        try:
            self.kubectl(args, **kwargs)
        except CommandFailed as exc:
            LOGGER.debug("kubectl failed: %s", exc)
            return False
        return True

    def apply_url(self, url):
        """apply a manifest from a URL"""
        self.kubectl(["apply", "-f", url])

    def apply(self, resources):
        """apply a list of resource dicts"""
        self.kubectl(["apply", "-f", "-"],
                     input=yaml.safe_dump_all(resources,
                                              default_flow_style=False))

    @property
    def is_ready(self):
        """Check if the API server answers and lists nodes.

        Returns:
            True if it's reachable.
        """
        logging.getLogger("urllib3").setLevel(logging.ERROR)
        try:
            self.api.list_node()
            return True
        except (ConfigException, OSError):
            # k3s did not write the kubeconfig yet
            self._api = None
            return False
        except (ApiException, urllib3.exceptions.HTTPError):
            return False
        finally:
            logging.getLogger("urllib3").setLevel(logging.WARNING)

    def wait_until_ready(self, retries=30, interval=2, sleep=time.sleep):
        """Poll :attr:`is_ready` ``retries`` times, ``interval`` seconds apart.

        Returns:
            True if the cluster became ready.
        """
        for _ in range(retries):
            if self.is_ready:
                return True
            sleep(interval)
        return self.is_ready

    def load_balancer_ip(self, namespace, name):
        """Return the first external IP of a LoadBalancer service or None"""
        try:
            svc = self.api.read_namespaced_service(name, namespace)
        except ApiException as exc:
            LOGGER.debug("No service %s/%s: %s", namespace, name, exc.reason)
            return None

        status = svc.status.load_balancer if svc.status else None
        if not status or not status.ingress:
            return None
        return status.ingress[0].ip or None

    def ingress_ip(self):
        """the LoadBalancer IP of the first ingress service having one"""
        for namespace, name in INGRESS_SERVICES:
            ip = self.load_balancer_ip(namespace, name)
            if ip:
                return ip
        return None

    @retry(CommandFailed, tries=5, delay=3, logger=LOGGER.warning)
    def configure_metallb_pool(self, pool):
        """Apply the address pool, retrying while MetalLB's webhook starts"""
        self.apply(metallb_pool_resources(pool))


class K3SInstaller:  # pylint: disable=too-many-instance-attributes
    """Install k3s with an optional ingress controller and MetalLB.

    Args:
        shell (:class:`hostkit.host.system.Shell`): runs the commands
        prompter (:class:`hostkit.cli.Prompter`): answers the questions,
            keys: ``install``, ``ingress``, ``metallb``, ``metallb-pool``,
            ``ready-retries``, ``ready-interval``
        k3s (:class:`K3S`): the cluster client, created if not given
        fetch (callable): downloads a URL and returns bytes
        sleep (callable): used while waiting
        environ (dict): the environment used to find the target user
    """

    # pylint: disable=too-many-arguments
    def __init__(self, shell, prompter, k3s=None, fetch=download,
                 sleep=time.sleep, environ=None):
        self.shell = shell
        self.prompter = prompter
        self.k3s = k3s or K3S(shell)
        self.fetch = fetch
        self.sleep = sleep
        self.user = target_user(environ)
        self.retries = prompter.answers.get('ready-retries', 30)
        self.interval = prompter.answers.get('ready-interval', 2)

    def run(self):
        """Run the installation.

        Raises:
            Aborted if the installation was declined
            ClusterNotReady if the API server does not come up
            CommandFailed if a required step fails
        """
        if not self.prompter.confirm('install', "Install k3s on this host?",
                                     default=True):
            raise Aborted("Aborting k3s installation.")

        ingress = self.choose_ingress()
        self.install(install_flags(ingress))

        LOGGER.info("Waiting for cluster to be ready...")
        if not self.k3s.wait_until_ready(self.retries, self.interval,
                                         sleep=self.sleep):
            raise ClusterNotReady("Cluster not responding; check k3s service.")
        LOGGER.success("Cluster is ready")

        if ingress != "none":
            self.setup_ingress(ingress)

        self.verify(ingress)
        report("",
               f"k3s installation finished. kubeconfig: {self.k3s.kubeconfig}",
               f"Hint: to use kubectl as {self.user}: sudo -u {self.user} "
               f"KUBECONFIG={self.k3s.kubeconfig} kubectl get nodes")

    def choose_ingress(self):
        """Returns 'none', 'traefik' or 'ingress-nginx'"""
        configured = self.prompter.answers.get('ingress')
        if configured == "none":
            return configured

        if not configured and not self.prompter.confirm(
                'want-ingress',
                "Do you want an ingress controller that manages automatic "
                "exposure?"):
            return "none"

        return self.prompter.choose('ingress', "Choose ingress controller:",
                                    INGRESS_CHOICES)

    def install(self, flags):
        """run the k3s installer script with ``flags``"""
        LOGGER.info("Installing k3s...")
        LOGGER.debug("INSTALL_K3S_EXEC=%s", flags)
        script = self.fetch(K3S_INSTALL_URL)
        self.shell.run(["sh", "-s", "-"], input=script,
                       env={"INSTALL_K3S_EXEC": flags})

    def setup_ingress(self, ingress):
        """deploy the ingress controller and make sure it can get an IP"""
        k3s = self.k3s
        if ingress == "traefik":
            LOGGER.info("Using Traefik (built-in when not disabled). If "
                        "Traefik was disabled, re-run k3s without --disable "
                        "traefik or install Traefik via Helm.")
        else:
            LOGGER.info("Deploying ingress-nginx...")
            k3s.apply_url(INGRESS_NGINX_MANIFEST)
            k3s.try_kubectl(["-n", "ingress-nginx", "wait",
                             "--for=condition=available", "--timeout=120s",
                             "deployment/ingress-nginx-controller"])

        LOGGER.info("Checking for LoadBalancer IP on ingress services...")
        self.sleep(2)
        lb_ip = k3s.ingress_ip()
        if lb_ip:
            LOGGER.success("Detected LoadBalancer IP: %s", lb_ip)
            return

        if self.prompter.confirm(
                'metallb',
                "No external LoadBalancer IP detected. Install MetalLB to "
                "provide LoadBalancer functionality?"):
            self.install_metallb()
        else:
            LOGGER.info("Skipping MetalLB installation. Ingress may expose "
                        "via NodePort or hostPort without a LoadBalancer.")

    def install_metallb(self):
        """Deploy MetalLB and configure the address pool if one is given.

        Returns:
            The configured pool or None.
        """
        k3s = self.k3s
        LOGGER.info("Installing MetalLB (layer2)...")
        k3s.apply_url(METALLB_MANIFEST)

        LOGGER.info("Enter a CIDR or IP range for MetalLB addresses "
                    "(example: 192.168.0.240-192.168.0.250):")
        pool = self.prompter.ask('metallb-pool', "IP pool: ")
        if not pool:
            LOGGER.warning("No IP pool provided; MetalLB deployed but not "
                           "configured.")
            return None

        try:
            pool = validate_address_pool(pool)
        except ValueError as exc:
            LOGGER.error("%s; MetalLB deployed but not configured.", exc)
            return None

        k3s.try_kubectl(["-n", METALLB_NAMESPACE, "wait",
                         "--for=condition=ready", "pod",
                         "--selector=app=metallb", "--timeout=120s"])
        k3s.configure_metallb_pool(pool)
        LOGGER.success("MetalLB configured with pool: %s", pool)
        return pool

    def verify(self, ingress):
        """print a brief overview of the cluster"""
        k3s = self.k3s
        report("", "Verification (brief):")
        k3s.try_kubectl(["get", "nodes"])
        try:
            pods = k3s.kubectl(["get", "pods", "-A", "--no-headers"],
                               capture=True).stdout or ""
            report(*pods.splitlines()[:15])
        except CommandFailed as exc:
            LOGGER.debug("Listing pods failed: %s", exc)

        if ingress == "none":
            return

        report("Ingress services:")
        if ingress == "ingress-nginx" and \
                k3s.try_kubectl(["-n", "ingress-nginx", "get", "svc"]):
            return
        try:
            services = k3s.kubectl(["-n", "kube-system", "get", "svc"],
                                   capture=True).stdout or ""
            report(*services.splitlines()[:20])
        except CommandFailed as exc:
            LOGGER.debug("Listing services failed: %s", exc)
