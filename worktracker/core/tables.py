"""Catalogue of the record tables served by the API."""

from __future__ import annotations

from dataclasses import dataclass


class UnknownTableError(KeyError):
    """Raised when a request names a table that is not registered."""


@dataclass(frozen=True)
class TableDefinition:
    name: str
    label: str
    required: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()
    sheet_name: str | None = None

    @property
    def mirrored(self) -> bool:
        return self.sheet_name is not None

    def describe(self) -> dict[str, object]:
        return {
            "name": self.name,
            "label": self.label,
            "required": list(self.required),
            "columns": list(self.columns),
            "mirrored": self.mirrored,
        }


TABLES: dict[str, TableDefinition] = {
    definition.name: definition
    for definition in (
        TableDefinition(
            name="work_trackers",
            label="Work Tracker",
            required=("site_name",),
            columns=(
                "id",
                "site_id_1",
                "site_id_2",
                "site_name",
                "regional",
                "customer",
                "po_number",
                "tt_number",
                "suspected",
                "main_addwork",
                "status_pekerjaan",
                "status_bast",
                "date_submit",
                "date_approve",
                "aging_days",
                "remark",
                "updated_at",
            ),
            sheet_name="Work Tracker",
        ),
        TableDefinition(
            name="pic_data",
            label="PIC Data",
            required=("nama_pic",),
            columns=(
                "id",
                "nama_pic",
                "jabatan",
                "nik_karyawan",
                "regional",
                "area",
                "status",
                "validasi",
                "tgl_join",
                "tgl_berakhir",
                "remark",
                "updated_at",
            ),
            sheet_name="PIC Data",
        ),
        TableDefinition(
            name="car_data",
            label="Car Data",
            required=("nomor_polisi",),
            columns=(
                "id",
                "nomor_polisi",
                "brand",
                "model",
                "year_build",
                "area",
                "province",
                "kabupaten",
                "owner",
                "condition",
                "status_mobil",
                "masa_berlaku_stnk",
                "masa_berlaku_pajak",
                "masa_berlaku_kir",
                "remark",
                "updated_at",
            ),
        ),
        TableDefinition(
            name="cctv_data",
            label="CCTV Data",
            required=("site_name",),
            columns=(
                "id",
                "site_id_display",
                "site_name",
                "regional",
                "branch",
                "merk_cctv",
                "model",
                "install_date",
                "status",
                "tenant_available",
                "cctv_category",
                "remarks",
                "updated_at",
            ),
            sheet_name="CCTV Data",
        ),
        TableDefinition(
            name="module_tracker",
            label="Module Tracker",
            required=("site_id",),
            columns=(
                "id",
                "site_id",
                "site_name",
                "provinsi",
                "kab_kota",
                "mitra",
                "module_qty",
                "install_qty",
                "gap",
                "install_status",
                "rfs_status",
                "rfs_date",
                "doc_atp",
                "tower_provider",
                "notes",
                "updated_at",
            ),
        ),
        TableDefinition(
            name="smartlock_data",
            label="Smart Lock",
            required=("site_id_pti",),
            columns=(
                "id",
                "site_id_pti",
                "site_name",
                "pti_reg",
                "city",
                "partners",
                "status_new",
                "priority",
                "date_install",
                "remark",
                "updated_at",
            ),
        ),
    )
}


def get_table(name: str) -> TableDefinition:
    try:
        return TABLES[name]
    except KeyError as exc:
        raise UnknownTableError(name) from exc
