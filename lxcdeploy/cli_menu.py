"""Interactive whiptail main menu.

The menu keeps the command-line and config-file layers fixed and lets the
user edit an interactive layer between them. Every edit is re-resolved
immediately so invalid answers are reported before anything is created.
"""
from typing import Any, Callable, Dict, Optional

from lxcdeploy.config.options import pinned_keys
from lxcdeploy.config.resolver import OptionResolver
from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import ConfigValidationError, ConflictError
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest
from lxcdeploy.services.dialog import DialogCancelled, WhiptailDialog
from lxcdeploy.services.proxmox.containers import ContainerDiscovery
from lxcdeploy.workflow.pipeline import DeploymentResult
from lxcdeploy.workflow.reporter import PLACEHOLDER_ADDRESS

logger = get_logger(__name__)

MENU_INSTALL = "1"
MENU_CONFIGURE = "2"
MENU_REVIEW = "3"
MENU_HELP = "4"
MENU_EXIT = "5"

HELP_TEXT = """Usage: lxcdeploy install [OPTIONS]

  -i, --ctid ID            Container ID (default: next free >= 100)
  -H, --hostname NAME      Container hostname
  -s, --storage NAME       Storage for the root filesystem
  -d, --disk-size SIZE     Disk size, e.g. 32G
  -m, --memory MB          Memory in MB
  -c, --cores N            CPU cores
  -u, --unprivileged       Create an unprivileged container
  -p, --password PW        Password for the container user
  -I, --ip CIDR            Static IP, e.g. 192.168.1.50/24 (default: DHCP)
  -g, --gateway IP         Gateway for a static IP
  -v, --vlan TAG           VLAN tag
  -b, --bridge NAME        Network bridge
  -a, --app NAME           Application recipe
  -D, --debug              Verbose logging
  -f, --force              Overwrite an existing container
  -N, --non-interactive    Skip this menu
  -r, --rerun              Install into the existing container --ctid

Run 'lxcdeploy install --help' for every option."""

InstallRunner = Callable[[ProvisioningRequest, AppRecipe, Callable[[str], bool]], DeploymentResult]


def _ask(dialog: WhiptailDialog, pinned: frozenset, key: str, text: str,
         current: Any) -> Optional[str]:
    """Input box unless ``key`` was pinned on the command line."""
    if key in pinned:
        return None
    return dialog.inputbox(text, "" if current is None else str(current))


def configure_settings(
    dialog: WhiptailDialog,
    request: ProvisioningRequest,
    discovery: ContainerDiscovery,
    pinned: frozenset = frozenset(),
) -> Dict[str, Any]:
    """Prompt for container settings.

    Returns:
        Interactive option layer (raw strings, normalized by the resolver)

    Raises:
        ConfigValidationError: Cancelled, or password confirmation mismatch
    """
    answers: Dict[str, Any] = {}
    res = request.resources
    net = request.network

    try:
        if 'ctid' not in pinned:
            current = request.ctid if request.ctid is not None else discovery.next_free_vmid()
            answers['ctid'] = dialog.inputbox("Enter Container ID:", str(current))

        answers['hostname'] = _ask(dialog, pinned, 'hostname', "Enter Hostname:", request.hostname)

        if 'storage' not in pinned:
            storages = discovery.list_storages()
            if storages:
                answers['storage'] = dialog.menu(
                    "Select Storage:",
                    [(name, "(current)" if name == res.storage else "") for name in storages],
                    height="15", width="60",
                )
            else:
                answers['storage'] = dialog.inputbox(
                    "Enter Storage (e.g., local-lvm):", res.storage
                )

        answers['disk_size'] = _ask(
            dialog, pinned, 'disk_size', "Enter Disk Size (e.g., 32G, 64G):", res.disk_size
        )
        answers['memory'] = _ask(dialog, pinned, 'memory', "Enter Memory in MB:", res.memory)
        answers['cores'] = _ask(dialog, pinned, 'cores', "Enter Number of CPU Cores:", res.cores)

        if 'unprivileged' not in pinned:
            answers['unprivileged'] = dialog.yesno(
                "Create Unprivileged Container?", default_yes=res.unprivileged
            )

        answers['bridge'] = _ask(
            dialog, pinned, 'bridge', "Enter Network Bridge (e.g., vmbr0):", net.bridge
        )

        static = net.is_static
        if 'ip' not in pinned:
            static = dialog.yesno("Use Static IP Address?", default_yes=net.is_static)
            if static:
                answers['ip'] = dialog.inputbox(
                    "Enter Static IP/CIDR (e.g., 192.168.1.10/24):", net.ip or ""
                )
            else:
                answers['ip'] = "dhcp"
        if static:
            answers['gateway'] = _ask(dialog, pinned, 'gateway', "Enter Gateway IP:", net.gateway)

        if 'vlan' not in pinned and dialog.yesno("Use VLAN Tag?", default_yes=net.vlan is not None):
            answers['vlan'] = dialog.inputbox("Enter VLAN ID:", "" if net.vlan is None else str(net.vlan))

        if 'password' not in pinned and dialog.yesno(
            f"Set a custom password for LXC user '{request.username}'?"
        ):
            password = dialog.passwordbox("Enter Password:")
            confirmation = dialog.passwordbox("Confirm Password:")
            if password != confirmation:
                dialog.msgbox("Passwords do not match! Please try again.")
                raise ConfigValidationError("Passwords do not match")
            answers['password'] = password

    except DialogCancelled as e:
        raise ConfigValidationError("Configuration cancelled") from e

    return {key: value for key, value in answers.items() if value is not None}


def review_settings(dialog: WhiptailDialog, request: ProvisioningRequest, recipe: AppRecipe) -> None:
    """Show the resolved settings in a message box."""
    width = max(len(label) for label, _ in request.summary_rows())
    lines = [f"{label + ':':<{width + 1}} {value}" for label, value in request.summary_rows()]
    dialog.msgbox(f"Current {recipe.title} LXC settings:\n\n" + "\n".join(lines), large=True)


def completion_message(result: DeploymentResult, recipe: AppRecipe) -> str:
    report = result.report
    lines = [
        f"{recipe.title} LXC Container ID: {report.ctid}",
        f"Hostname: {report.hostname}",
        f"LXC Username: {report.username}",
        "Password: " + (report.password if report.password else "Set (hidden)"),
        "",
        f"Access {recipe.title} at: {report.url}",
        "",
        f"You can also access the LXC via SSH: ssh {report.username}@{report.address}",
    ]
    if report.address == PLACEHOLDER_ADDRESS:
        lines.append(f"(check the address with 'pct exec {report.ctid} -- ip a')")
    if report.notes:
        lines.append("")
        lines.extend(report.notes)
    return "\n".join(lines)


def main_menu(
    dialog: WhiptailDialog,
    resolver: OptionResolver,
    discovery: ContainerDiscovery,
    run_install: InstallRunner,
    flags: Optional[Dict[str, Any]] = None,
    config_file: Optional[Dict[str, Any]] = None,
) -> Optional[DeploymentResult]:
    """Run the menu loop until the user installs or exits.

    Returns:
        The deployment result, or None if the user left without installing

    Raises:
        DeployError: Any failure during installation other than an id conflict
    """
    pinned = pinned_keys(flags)
    interactive: Dict[str, Any] = {}
    request, recipe = resolver.resolve(flags, interactive, config_file)

    while True:
        try:
            choice = dialog.menu("Choose an option:", [
                (MENU_INSTALL, f"Install {recipe.title} LXC"),
                (MENU_CONFIGURE, "Configure LXC Settings"),
                (MENU_REVIEW, "Review Current Settings"),
                (MENU_HELP, "Help / Usage"),
                (MENU_EXIT, "Exit"),
            ])
        except DialogCancelled:
            return None

        if choice == MENU_INSTALL:
            review_settings(dialog, request, recipe)
            if not dialog.yesno(
                f"Proceed with {recipe.title} LXC installation using the above settings?"
            ):
                continue
            try:
                result = run_install(request, recipe, dialog.yesno)
            except ConflictError as e:
                logger.warning(str(e))
                dialog.msgbox(str(e))
                continue
            dialog.msgbox(completion_message(result, recipe), large=True)
            return result

        elif choice == MENU_CONFIGURE:
            try:
                answers = configure_settings(dialog, request, discovery, pinned)
                request, recipe = resolver.resolve(flags, {**interactive, **answers}, config_file)
                interactive = {**interactive, **answers}
            except ConfigValidationError as e:
                logger.warning(f"Configuration not applied: {e}")
                dialog.msgbox(f"Configuration cancelled or failed. Please re-enter.\n\n{e}")

        elif choice == MENU_REVIEW:
            review_settings(dialog, request, recipe)

        elif choice == MENU_HELP:
            dialog.msgbox(HELP_TEXT, large=True)

        else:
            return None
