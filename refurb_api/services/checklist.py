"""
Static inspection checklist catalog: 20 ordered criteria per device category.

The same catalog drives inspection routing and the QC re-check.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from refurb_api.core.errors import NotFound, ValidationFailed
from refurb_api.db.models.enums import ChecklistResult, DeviceCategory


@dataclass(frozen=True)
class ChecklistItemDefinition:
    index: int
    text: str
    notes_placeholder: Optional[str] = None


def _items(*rows: tuple) -> Tuple[ChecklistItemDefinition, ...]:
    return tuple(ChecklistItemDefinition(*row) for row in rows)


CHECKLIST_CATALOG: Dict[DeviceCategory, Tuple[ChecklistItemDefinition, ...]] = {
    DeviceCategory.LAPTOP: _items(
        (1, "LCD screen free from cracks, scratches, and physical damage"),
        (2, "Dead pixel test: 0 dead/stuck pixels found"),
        (3, "Screen brightness and color uniformity acceptable"),
        (4, "Keyboard: All keys present, functional, no sticking"),
        (5, "Touchpad responsive, buttons functional, no cracks"),
        (6, "Lid/cover: Hinges operate smoothly, no excessive wobble"),
        (7, "Case condition: No major dents, cracks, or warping"),
        (8, "Battery health check (minimum 70% acceptable)", "___% capacity"),
        (9, "All USB ports tested and functional", "count: ___"),
        (10, "HDMI/DisplayPort output tested successfully"),
        (11, "Audio jack and speakers tested, both channels work"),
        (12, "Ethernet port tested and functional"),
        (13, "Charging port secure, charges properly"),
        (14, "WiFi connects successfully, signal strength good"),
        (15, "Bluetooth tested and pairs correctly"),
        (16, "Webcam and microphone tested, quality acceptable"),
        (17, "BIOS accessible, no password protection"),
        (18, "CPU, RAM, Storage verified", "CPU: ___, RAM: ___GB, Storage: ___GB"),
        (19, "Burn-in test completed: no errors/crashes", "___hours"),
        (20, "Temperature readings normal, fans operate correctly"),
    ),
    DeviceCategory.DESKTOP: _items(
        (1, "Case exterior: No major dents, cracks, or damage"),
        (2, "Front panel buttons functional (power, reset)"),
        (3, "Side panels fit properly and secure"),
        (4, "Motherboard visually inspected: No bulging capacitors"),
        (5, "CPU heatsink properly mounted, thermal paste acceptable"),
        (6, "RAM modules properly seated", "___GB total detected"),
        (7, "Storage drives properly installed and secure"),
        (8, "GPU properly seated in PCIe slot (if present)"),
        (9, "All power cables properly connected (24-pin, CPU, PCIe)"),
        (10, "Cable management adequate, no loose cables"),
        (11, "All case fans present and operational"),
        (12, "Front and rear USB ports tested", "count: ___"),
        (13, "Audio ports (front and rear) tested successfully"),
        (14, "Video outputs tested (HDMI, DP, VGA, DVI)"),
        (15, "Ethernet port tested and functional"),
        (16, "POST successful, all components detected in BIOS"),
        (17, "Storage drives detected, SMART status healthy"),
        (18, "System boots successfully, stable operation"),
        (19, "CPU and GPU stress test: temps acceptable", "___hours"),
        (20, "No unusual noises (grinding, clicking, excessive fan noise)"),
    ),
    DeviceCategory.WORKSTATION: _items(
        (1, "Case exterior: No major dents, cracks, or damage"),
        (2, "Front panel buttons functional (power, reset)"),
        (3, "Side panels fit properly and secure"),
        (4, "Motherboard visually inspected: No bulging capacitors"),
        (5, "CPU heatsink properly mounted, thermal paste acceptable"),
        (6, "RAM modules properly seated", "___GB total detected"),
        (7, "Storage drives properly installed and secure"),
        (8, "GPU properly seated in PCIe slot (if present)"),
        (9, "All power cables properly connected (24-pin, CPU, PCIe)"),
        (10, "Cable management adequate, no loose cables"),
        (11, "All case fans present and operational"),
        (12, "Front and rear USB ports tested", "count: ___"),
        (13, "Audio ports (front and rear) tested successfully"),
        (14, "Video outputs tested (HDMI, DP, VGA, DVI)"),
        (15, "Ethernet port tested and functional"),
        (16, "POST successful, all components detected in BIOS"),
        (17, "Storage drives detected, SMART status healthy"),
        (18, "System boots successfully, stable operation"),
        (19, "CPU and GPU stress test: temps acceptable", "___hours"),
        (20, "No unusual noises (grinding, clicking, excessive fan noise)"),
    ),
    DeviceCategory.SERVER: _items(
        (1, "Rack mounting hardware intact and complete"),
        (2, "Chassis physically sound, no structural damage"),
        (3, "Drive bay trays/caddies present", "count: ___"),
        (4, "Front LCD/LED panel functional (if present)"),
        (5, "CPU configuration verified", "___x CPUs"),
        (6, "RAM capacity verified", "___GB properly detected"),
        (7, "RAID controller present and detected"),
        (8, "Network interface cards detected", "___x ports detected"),
        (9, "Management controller (iDRAC/iLO/BMC) accessible"),
        (10, "Remote console/KVM functionality verified"),
        (11, "All installed drives detected in BIOS/RAID controller"),
        (12, "SMART status checked: All drives healthy"),
        (13, "Hot-swap functionality tested on drive bays"),
        (14, "Network ports tested: Link established, speed verified"),
        (15, "Redundant power supplies: Both functional (if applicable)"),
        (16, "Power supply failover tested successfully"),
        (17, "All cooling fans operational, speeds normal"),
        (18, "Temperature sensors reading correctly"),
        (19, "System stress test: no errors logged", "___hours"),
        (20, "Firmware versions documented, no critical updates needed"),
    ),
    DeviceCategory.MONITOR: _items(
        (1, "Screen free from cracks, scratches, or physical damage"),
        (2, "Dead pixel test: 0 dead/stuck pixels confirmed"),
        (3, "Screen uniformity test: No bright spots or dark areas"),
        (4, "Backlight bleeding: Minimal/acceptable levels"),
        (5, "Color reproduction accurate across full spectrum"),
        (6, "Bezel intact, no cracks or missing pieces"),
        (7, "Stand/base stable, no wobbling"),
        (8, "HDMI input(s) tested", "count: ___"),
        (9, "DisplayPort input(s) tested", "count: ___"),
        (10, "VGA/DVI inputs tested (if present)"),
        (11, "OSD menu accessible, all buttons functional"),
        (12, "Brightness and contrast adjustments work properly"),
        (13, "Stand adjustments functional: Tilt, height, swivel (as applicable)"),
        (14, "Built-in speakers tested (if present)"),
        (15, "USB hub ports tested (if present)"),
        (16, "Native resolution verified", "___x___ at ___Hz"),
        (17, "No image ghosting or trailing in motion test"),
        (18, "No flickering at any brightness level"),
        (19, "Extended burn-in test: no image retention", "___hours"),
        (20, "Power cable and adapter included (if external)"),
    ),
    DeviceCategory.STORAGE: _items(
        (1, "Physical condition: Casing intact, no damage or corrosion"),
        (2, "Connector pins straight and undamaged"),
        (3, "Label intact and readable, model/serial verified"),
        (4, "No rattling sounds when shaken gently (HDD only)"),
        (5, "Device detected by system correctly"),
        (6, "Reported capacity matches specifications"),
        (7, "Interface speed correct (SATA 3Gbps/6Gbps, PCIe Gen)"),
        (8, "SMART status: Overall health PASSED"),
        (9, "SMART: Reallocated sectors count", "count: ___"),
        (10, "SMART: Current pending sectors", "count: ___"),
        (11, "SMART: Uncorrectable errors", "count: ___"),
        (12, "Power-on hours and power cycle count documented", "POH: ___, Cycles: ___"),
        (13, "Sequential read speed meets specification", "___MB/s"),
        (14, "Sequential write speed meets specification", "___MB/s"),
        (15, "Surface scan completed: 0 bad sectors found"),
        (16, "Temperature during operation acceptable", "___°C"),
        (17, "Data sanitization completed: Secure erase/wipe verified"),
        (18, "No recoverable data remaining on device"),
        (19, "Extended stress test: no errors", "___hours"),
        (20, "Mounting hardware/adapter included (if applicable)"),
    ),
    DeviceCategory.NETWORKING_CARD: _items(
        (1, "PCB condition: Clean, no cracks, burns, or damage"),
        (2, "No bulging or leaking capacitors"),
        (3, "PCIe connector edge clean and undamaged"),
        (4, "Mounting bracket secure and straight"),
        (5, "All port connectors physically intact"),
        (6, "Heatsink properly attached (if present)"),
        (7, "Card properly seated in PCIe slot"),
        (8, "Detected correctly by system BIOS and OS"),
        (9, "Driver installation successful, no errors"),
        (10, "MAC address(es) readable and documented"),
        (11, "All ports tested individually"),
        (12, "Link established at correct speed", "___Gbps"),
        (13, "Auto-negotiation and duplex mode correct"),
        (14, "LED indicators (link, activity) functional"),
        (15, "Throughput test: achieved with 0% packet loss", "___Gbps"),
        (16, "Latency acceptable, no connection drops"),
        (17, "Advanced features tested (if applicable): VLAN, offload, SR-IOV"),
        (18, "Stress test: stable at full load", "___hours"),
        (19, "Temperature acceptable under load"),
        (20, "Low-profile bracket included (if applicable)"),
    ),
}


# PUBLIC_INTERFACE
def get_checklist(category: str | DeviceCategory) -> Tuple[ChecklistItemDefinition, ...]:
    """Return the ordered checklist for a device category."""
    try:
        return CHECKLIST_CATALOG[DeviceCategory(category)]
    except ValueError:
        raise NotFound(f"Unknown device category {category}")


# PUBLIC_INTERFACE
def validate_results(category: str | DeviceCategory, indexes: Iterable[int]) -> Dict[int, ChecklistItemDefinition]:
    """
    Check that `indexes` holds exactly one result per catalog item.

    Raises ValidationFailed naming unknown, duplicate and missing indexes.
    Returns the catalog keyed by index.
    """
    catalog = {item.index: item for item in get_checklist(category)}
    seen: set[int] = set()
    unknown: List[int] = []
    duplicate: List[int] = []
    for index in indexes:
        if index not in catalog:
            unknown.append(index)
        elif index in seen:
            duplicate.append(index)
        seen.add(index)
    missing = sorted(set(catalog) - seen)
    if unknown or duplicate or missing:
        raise ValidationFailed(
            "Checklist must contain exactly one result for each item",
            details={"unknown": sorted(unknown), "duplicate": sorted(set(duplicate)), "missing": missing},
        )
    return catalog


def is_failure(result: str | ChecklistResult) -> bool:
    """NOT_APPLICABLE counts as a pass."""
    return ChecklistResult(result) is ChecklistResult.FAIL


def format_item(item: ChecklistItemDefinition, notes: Optional[str]) -> str:
    """`[index] text: notes`, or `[index] text` without notes."""
    label = f"[{item.index}] {item.text}"
    notes = (notes or "").strip()
    return f"{label}: {notes}" if notes else label
