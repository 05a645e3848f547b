"""
Destination table schemas.

Each table has a row type (column order = field order) and a row builder
that maps a raw source record onto it, applying the per-column defaults.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple, Type

from .coerce import Number, number, text, text_array, timestamp

Record = Dict[str, Any]


class AssemblyLotRow(NamedTuple):
    id: str
    mother_lot_id: str
    device: str
    package_type: str
    eqp_id: str
    operation_step: str
    in_qty: Number
    out_qty: Number
    yield_status: str
    track_in_time: str
    track_out_time: str
    operator: str


class AssemblySplitLotRow(NamedTuple):
    id: str
    child_lot_id: str
    parent_lot_id: str
    eqp_id: str
    operation_step: str
    material_id: str
    in_qty: Number
    out_qty: Number
    yield_status: str
    track_in_time: str
    track_out_time: str
    operator: str


class EquipmentEventRow(NamedTuple):
    id: str
    event_id: str
    eqp_id: str
    alarm_code: str
    alarm_desc: str
    alarm_ts: Optional[str]
    severity: str
    resolution_time: Optional[str]
    affected_lots: str
    operator: str
    notes: str


class EquipmentStatusRow(NamedTuple):
    id: str
    eqp_id: str
    eqp_type: str
    status: str
    status_ts: Optional[str]
    lot_id: str
    recipe: str
    operator: str
    location: str
    notes: str


class FinalTestLotRow(NamedTuple):
    id: str
    ft_lot_id: str
    assy_mother_lot: str
    device: str
    vendor_lot: str
    test_eqp_id: str
    in_qty: Number
    out_qty: Number
    yield_: Number
    fpy: Number
    bin: str
    open_rejects: Number
    short_rejects: Number
    func_rejects: Number
    status: str
    operator: str
    start_time: str
    end_time: str
    customer: str
    plant: str


class MaterialRow(NamedTuple):
    id: str
    material_id: str
    vendor_id: str
    vendor_name: str
    batch_no: str
    receipt_date: str
    consumed_in_lots: str
    material_type: str
    quality_status: str


def assembly_lot_row(record: Record, row_id: str) -> AssemblyLotRow:
    return AssemblyLotRow(
        id=row_id,
        mother_lot_id=text(record.get("motherLotId")),
        device=text(record.get("device")),
        package_type=text(record.get("packageType")),
        eqp_id=text(record.get("eqpId")),
        operation_step=text(record.get("operationStep")),
        in_qty=number(record.get("inQty"), "inQty"),
        out_qty=number(record.get("outQty"), "outQty"),
        yield_status=text(record.get("yieldStatus")),
        track_in_time=text(record.get("trackInTime")),
        track_out_time=text(record.get("trackOutTime")),
        operator=text(record.get("operator")),
    )


def assembly_split_lot_row(record: Record, row_id: str) -> AssemblySplitLotRow:
    # Split lot exports spell the equipment key "eqpid"
    return AssemblySplitLotRow(
        id=row_id,
        child_lot_id=text(record.get("childLotId")),
        parent_lot_id=text(record.get("parentLotId")),
        eqp_id=text(record.get("eqpid")),
        operation_step=text(record.get("operationStep")),
        material_id=text(record.get("materialId")),
        in_qty=number(record.get("inQty"), "inQty"),
        out_qty=number(record.get("outQty"), "outQty"),
        yield_status=text(record.get("yieldStatus")),
        track_in_time=text(record.get("trackInTime")),
        track_out_time=text(record.get("trackOutTime")),
        operator=text(record.get("operator")),
    )


def equipment_event_row(record: Record, row_id: str) -> EquipmentEventRow:
    return EquipmentEventRow(
        id=row_id,
        event_id=text(record.get("eventId")),
        eqp_id=text(record.get("eqpId")),
        alarm_code=text(record.get("alarmCode")),
        alarm_desc=text(record.get("alarmDesc")),
        alarm_ts=timestamp(record.get("alarmTs")),
        severity=text(record.get("severity")),
        resolution_time=timestamp(record.get("resolutionTime")),
        affected_lots=text_array(record.get("affectedLots")),
        operator=text(record.get("operator")),
        notes=text(record.get("notes")),
    )


def equipment_status_row(record: Record, row_id: str) -> EquipmentStatusRow:
    return EquipmentStatusRow(
        id=row_id,
        eqp_id=text(record.get("eqpId")),
        eqp_type=text(record.get("eqpType")),
        status=text(record.get("status")),
        status_ts=timestamp(record.get("statusTs")),
        lot_id=text(record.get("lotId")),
        recipe=text(record.get("recipe")),
        operator=text(record.get("operator")),
        location=text(record.get("location")),
        notes=text(record.get("notes")),
    )


def final_test_lot_row(record: Record, row_id: str) -> FinalTestLotRow:
    return FinalTestLotRow(
        id=row_id,
        ft_lot_id=text(record.get("ftLotId")),
        assy_mother_lot=text(record.get("assyMotherLot")),
        device=text(record.get("device")),
        vendor_lot=text(record.get("vendorLot")),
        test_eqp_id=text(record.get("testEqpId")),
        in_qty=number(record.get("inQty"), "inQty"),
        out_qty=number(record.get("outQty"), "outQty"),
        yield_=number(record.get("yield"), "yield"),
        fpy=number(record.get("fpy"), "fpy"),
        bin=text(record.get("bin")),
        open_rejects=number(record.get("openRejects"), "openRejects"),
        short_rejects=number(record.get("shortRejects"), "shortRejects"),
        func_rejects=number(record.get("funcRejects"), "funcRejects"),
        status=text(record.get("status")),
        operator=text(record.get("operator")),
        start_time=text(record.get("startTime")),
        end_time=text(record.get("endTime")),
        customer=text(record.get("customer")),
        plant=text(record.get("plant")),
    )


def material_row(record: Record, row_id: str) -> MaterialRow:
    return MaterialRow(
        id=row_id,
        # numeric ids keep their digits: 0 keys as "0", not as ""
        material_id=text(record.get("materialId")),
        vendor_id=text(record.get("vendorId")),
        vendor_name=text(record.get("vendorName")),
        batch_no=text(record.get("batchNo")),
        receipt_date=text(record.get("receiptDate")),
        consumed_in_lots=text_array(record.get("consumedInLots")),
        material_type=text(record.get("materialType")),
        quality_status=text(record.get("qualityStatus")),
    )


@dataclass(frozen=True)
class TableSchema:
    """Destination table: name, row type, row builder and optional unique key."""
    name: str
    label: str
    row_type: Type[tuple]
    build_row: Callable[[Record, str], tuple]
    conflict_key: Optional[str] = None

    @property
    def columns(self) -> Tuple[str, ...]:
        # "yield" is reserved in Python; field names carry a trailing underscore
        return tuple(f.rstrip("_") for f in self.row_type._fields)

    @property
    def ignores_conflicts(self) -> bool:
        return self.conflict_key is not None


TABLES: Dict[str, TableSchema] = {
    "assembly_lots": TableSchema(
        "assembly_mother_lots", "Assembly Lots", AssemblyLotRow, assembly_lot_row
    ),
    "assembly_split_lots": TableSchema(
        "assembly_split_lots", "Assembly Split Lots", AssemblySplitLotRow, assembly_split_lot_row
    ),
    "equipment_events": TableSchema(
        "equipment_events", "Equipment Events", EquipmentEventRow, equipment_event_row
    ),
    "equipment_status": TableSchema(
        "equipment_status", "Equipment Status", EquipmentStatusRow, equipment_status_row
    ),
    "final_test_lots": TableSchema(
        "final_test_lots", "Final Test Lots", FinalTestLotRow, final_test_lot_row
    ),
    "materials": TableSchema(
        "materials", "Materials", MaterialRow, material_row, conflict_key="material_id"
    ),
}


def get_table(record_type: str) -> TableSchema:
    """Look up a table schema by record type name."""
    try:
        return TABLES[record_type]
    except KeyError:
        known = ", ".join(sorted(TABLES))
        raise KeyError(f"Unknown record type '{record_type}' (known: {known})") from None
