from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex
from ...utils.helpers import fmt_money
from .cart import Cart


class CartTableModel(QAbstractTableModel):
    """Products first, then services, as one flat list of rows."""

    HEADERS = ["Item", "IMEI", "Storage", "Color", "Carrier", "Price"]

    def __init__(self, cart: Cart):
        super().__init__()
        self._cart = cart
        self._rows = self._build_rows()

    def _build_rows(self) -> list:
        rows = []
        for p in self._cart.products:
            name = " ".join(x for x in (p.brand, p.model, f"{p.capacity}{p.capacity_unit}") if x)
            rows.append({
                "item_id": p.item_id,
                "kind": "product",
                "name": name,
                "imei": ", ".join(p.imeis),
                "storage": p.storage_location,
                "color": p.color,
                "carrier": p.carrier,
                "price": p.unit_price,
            })
        for s in self._cart.services:
            rows.append({
                "item_id": s.item_id,
                "kind": "service",
                "name": s.name,
                "imei": "",
                "storage": "",
                "color": "",
                "carrier": "",
                "price": s.price,
            })
        return rows

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def data(self, idx, role=Qt.DisplayRole):
        if not idx.isValid():
            return None
        r = self._rows[idx.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            m = [r["name"], r["imei"], r["storage"], r["color"], r["carrier"], fmt_money(r["price"])]
            return m[idx.column()]
        if role == Qt.TextAlignmentRole and idx.column() == len(self.HEADERS) - 1:
            return int(Qt.AlignRight | Qt.AlignVCenter)
        return None

    def headerData(self, s, o, role=Qt.DisplayRole):
        return self.HEADERS[s] if o == Qt.Horizontal and role == Qt.DisplayRole else super().headerData(s, o, role)

    def at(self, row: int) -> dict:
        return self._rows[row]

    def refresh(self):
        self.beginResetModel()
        self._rows = self._build_rows()
        self.endResetModel()
