import sys
import asyncio
import bisect
import logging
from typing import Dict, List, Optional, Tuple

from PySide6.QtWidgets import (
    QApplication,
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QPushButton,
    QLabel,
    QLineEdit,
    QCheckBox,
    QTableView,
    QHeaderView,
    QTextEdit,
    QButtonGroup,
    QAbstractItemView,
)
from PySide6.QtGui import QBrush, QColor
from PySide6.QtCore import Qt, QAbstractTableModel, QModelIndex, QObject, QEvent
import qasync

from wordmon.core.address import DeviceAddress
from wordmon.core.config import MonitorConfig
from wordmon.core.formats import DisplayFormat
from wordmon.core.selection import SelectionWorkflow
from wordmon.core.session import MonitorSession
from wordmon.core.view import ViewSink
from wordmon.mock_server import MockBackend
from wordmon.transports.base import is_running_status
from wordmon.utils.decoding import RowState

if not logging.getLogger().hasHandlers():
    logging.basicConfig(level=logging.INFO)
    logging.getLogger('asyncio').setLevel(logging.INFO)
    logging.getLogger('qasync').setLevel(logging.INFO)
logger = logging.getLogger("wordmon.gui")

BIT_COLUMNS = 16
VALUE_COLUMN = 1 + BIT_COLUMNS
RAW_COLUMN = VALUE_COLUMN + 1


class WordTableModel(QAbstractTableModel):
    """One row per device word: label, 16 bit cells, value, raw hex."""

    def __init__(self):
        super().__init__()
        self._order: List[Tuple[str, int]] = []
        self._rows: Dict[Tuple[str, int], RowState] = {}
        self._selected: Optional[Tuple[str, int]] = None
        self._format = DisplayFormat.U16

    def set_format_label(self, fmt: DisplayFormat):
        self._format = fmt
        self.headerDataChanged.emit(Qt.Horizontal, VALUE_COLUMN, VALUE_COLUMN)

    def apply(self, state: RowState):
        sort_key = (state.address.key, state.address.addr)
        if sort_key in self._rows:
            self._rows[sort_key] = state
            row = self._order.index(sort_key)
            self.dataChanged.emit(self.index(row, 0), self.index(row, RAW_COLUMN))
            return
        row = bisect.bisect_left(self._order, sort_key)
        self.beginInsertRows(QModelIndex(), row, row)
        self._order.insert(row, sort_key)
        self._rows[sort_key] = state
        self.endInsertRows()

    def clear_rows(self):
        self.beginResetModel()
        self._order.clear()
        self._rows.clear()
        self.endResetModel()

    def row_of(self, address: DeviceAddress) -> int:
        try:
            return self._order.index((address.key, address.addr))
        except ValueError:
            return -1

    def address_at(self, row: int) -> Optional[DeviceAddress]:
        if 0 <= row < len(self._order):
            return self._rows[self._order[row]].address
        return None

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._order)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return RAW_COLUMN + 1

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        state = self._rows[self._order[index.row()]]
        col = index.column()

        if role == Qt.DisplayRole:
            if col == 0:
                return state.label
            if col == VALUE_COLUMN:
                return state.formatted
            if col == RAW_COLUMN:
                return state.raw
            return None

        if role == Qt.BackgroundRole:
            if 1 <= col <= BIT_COLUMNS and state.bits[col - 1]:
                return QBrush(QColor(0x4D, 0xA6, 0xFF))
            if state.suppressed:
                return QBrush(QColor(0xEE, 0xEE, 0xEE))
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole):  # type: ignore[override]
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            if section == 0:
                return "Device"
            if section == VALUE_COLUMN:
                return self._format.value
            if section == RAW_COLUMN:
                return "Raw"
            return f"{BIT_COLUMNS - section:X}"
        return super().headerData(section, orientation, role)


class QtTableSink(ViewSink):
    """Forwards monitor view updates into the Qt model and table view."""

    def __init__(self, model: WordTableModel, table: QTableView):
        self.model = model
        self.table = table

    def apply(self, state: RowState) -> None:
        self.model.apply(state)

    def clear(self) -> None:
        self.model.clear_rows()

    def select(self, address: Optional[DeviceAddress]) -> None:
        if address is None:
            self.table.clearSelection()
            return
        row = self.model.row_of(address)
        if row < 0:
            return
        self.table.selectRow(row)
        self.table.scrollTo(self.model.index(row, 0))


class EditPopup(QWidget):
    """Modeless write surface that follows the table selection."""

    def __init__(self, window: "MainWindow"):
        super().__init__(window, Qt.Tool)
        self._window = window
        layout = QVBoxLayout()
        self.setLayout(layout)
        self.title_label = QLabel("Write")
        layout.addWidget(self.title_label)
        self.value_edit = QLineEdit()
        self.value_edit.textChanged.connect(self._on_text_changed)
        self.value_edit.returnPressed.connect(window.on_write_clicked)
        layout.addWidget(self.value_edit)

        type_row = QHBoxLayout()
        self.type_group = QButtonGroup(self)
        self.type_group.setExclusive(True)
        self._type_buttons: Dict[DisplayFormat, QPushButton] = {}
        for fmt in DisplayFormat:
            btn = QPushButton(fmt.value)
            btn.setCheckable(True)
            btn.clicked.connect(lambda _checked=False, f=fmt: window.session.choose_write_format(f))
            self.type_group.addButton(btn)
            type_row.addWidget(btn)
            self._type_buttons[fmt] = btn
        layout.addLayout(type_row)

        buttons = QHBoxLayout()
        self.btn_write = QPushButton("Write")
        self.btn_write.clicked.connect(window.on_write_clicked)
        self.btn_cancel = QPushButton("Cancel")
        self.btn_cancel.clicked.connect(window.dismiss_editor)
        buttons.addWidget(self.btn_write)
        buttons.addWidget(self.btn_cancel)
        layout.addLayout(buttons)

    def _on_text_changed(self, text: str):
        self._window.session.workflow.literal = text

    def sync(self, workflow: SelectionWorkflow):
        target = workflow.edit_target
        if target is not None:
            self.title_label.setText(f"Write {target.label}")
        btn = self._type_buttons.get(workflow.write_format)
        if btn is not None:
            btn.setChecked(True)
        if workflow.literal == "" and self.value_edit.text():
            self.value_edit.clear()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape:
            self._window.dismiss_editor()
            return
        if event.key() in (Qt.Key_Up, Qt.Key_Down):
            self._window.session.workflow.move(-1 if event.key() == Qt.Key_Up else 1)
            return
        super().keyPressEvent(event)


class MainWindow(QMainWindow):
    def __init__(self, config: Optional[MonitorConfig] = None, backend: Optional[MockBackend] = None):
        super().__init__()
        self.setWindowTitle("Word Monitor")
        self.resize(1000, 700)

        self.backend = backend or MockBackend()
        self.session = MonitorSession(self.backend, events=self.backend, config=config)

        central = QWidget(self)
        self.setCentralWidget(central)
        root_layout = QVBoxLayout()
        central.setLayout(root_layout)

        cfg = self.session.config
        conn_row = QHBoxLayout()
        self.tcp_port_edit = QLineEdit(str(cfg.tcp_port))
        self.udp_port_edit = QLineEdit(str(cfg.udp_port))
        self.tim_await_edit = QLineEdit(str(cfg.tim_await_ms))
        for label, edit in (("TCP:", self.tcp_port_edit), ("UDP:", self.udp_port_edit), ("TimAwait ms:", self.tim_await_edit)):
            edit.setMaximumWidth(70)
            conn_row.addWidget(QLabel(label))
            conn_row.addWidget(edit)
        self.btn_mock = QPushButton("Start Mock")
        self.btn_mock.clicked.connect(self.on_mock_toggle_clicked)
        conn_row.addWidget(self.btn_mock)
        self.auto_start_checkbox = QCheckBox("Auto start next time")
        self.auto_start_checkbox.setChecked(self.session.prefs.auto_start_next)
        conn_row.addWidget(self.auto_start_checkbox)
        self.status_label = QLabel(self.session.status)
        conn_row.addWidget(self.status_label)
        conn_row.addStretch(1)
        root_layout.addLayout(conn_row)

        target_row = QHBoxLayout()
        target_row.addWidget(QLabel("Target:"))
        self.target_edit = QLineEdit(cfg.target)
        self.target_edit.setMaximumWidth(100)
        self.target_edit.returnPressed.connect(self.on_target_entered)
        target_row.addWidget(self.target_edit)
        self.format_group = QButtonGroup(self)
        self._format_buttons: Dict[DisplayFormat, QPushButton] = {}
        for fmt in DisplayFormat:
            btn = QPushButton(fmt.value)
            btn.setCheckable(True)
            btn.clicked.connect(lambda _checked=False, f=fmt: self.session.set_display_format(f))
            self.format_group.addButton(btn)
            target_row.addWidget(btn)
            self._format_buttons[fmt] = btn
        target_row.addStretch(1)
        root_layout.addLayout(target_row)

        self.model = WordTableModel()
        self.table = QTableView()
        self.table.setModel(self.model)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.table.clicked.connect(self.on_row_clicked)
        self.table.doubleClicked.connect(self.on_row_double_clicked)
        self.table.installEventFilter(self)
        root_layout.addWidget(self.table, 1)

        self.log_view = QTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumHeight(140)
        root_layout.addWidget(self.log_view)

        self.editor = EditPopup(self)
        pos = self.session.prefs.edit_popup_pos
        if pos is not None:
            self.editor.move(*pos)

        self.session.add_sink(QtTableSink(self.model, self.table))
        self.session.view.add_format_callback(self._on_format_changed)
        self.session.add_status_callback(self._on_status)
        self.session.workflow.add_listener(self._on_workflow_changed)
        self.session.log.add_observer(lambda entry: self.log_view.append(str(entry)))
        self._on_format_changed(self.session.format)

    async def initialize(self):
        await self.session.initialize()
        self._sync_mock_button()

    def _sync_mock_button(self):
        self.btn_mock.setText("Stop Mock" if self.session.running else "Start Mock")

    def _on_format_changed(self, fmt: DisplayFormat):
        btn = self._format_buttons.get(fmt)
        if btn is not None:
            btn.setChecked(True)
        self.model.set_format_label(fmt)
        self.editor.sync(self.session.workflow)

    def _on_status(self, status: str):
        self.status_label.setText(status)
        color = "green" if is_running_status(status) else ("red" if status == "start-failed" else "black")
        self.status_label.setStyleSheet(f"color: {color}")
        if is_running_status(status):
            self.table.setFocus()

    def _on_workflow_changed(self, workflow: SelectionWorkflow):
        if workflow.editing:
            self.editor.sync(workflow)
            if not self.editor.isVisible():
                self.editor.show()
            self.editor.value_edit.setFocus()
        elif self.editor.isVisible():
            self.editor.hide()

    def _read_int(self, edit: QLineEdit, default: int) -> int:
        try:
            return int(edit.text() or default)
        except ValueError:
            return default

    @qasync.asyncSlot()
    async def on_mock_toggle_clicked(self):
        cfg = self.session.config
        cfg.tcp_port = self._read_int(self.tcp_port_edit, 5000)
        cfg.udp_port = self._read_int(self.udp_port_edit, 5001)
        cfg.tim_await_ms = self._read_int(self.tim_await_edit, 5000)
        await self.session.toggle(auto_start_next=self.auto_start_checkbox.isChecked())
        self._sync_mock_button()

    @qasync.asyncSlot()
    async def on_target_entered(self):
        target = await self.session.change_target(self.target_edit.text())
        self.target_edit.setText(target.label)

    @qasync.asyncSlot()
    async def on_write_clicked(self):
        await self.session.workflow.commit(self.editor.value_edit.text())

    def on_row_clicked(self, index: QModelIndex):
        address = self.model.address_at(index.row())
        if address is not None:
            self.session.workflow.select(address)

    def on_row_double_clicked(self, index: QModelIndex):
        address = self.model.address_at(index.row())
        if address is not None:
            self.session.workflow.open_editor(address)

    def dismiss_editor(self):
        pos = self.editor.pos()
        self.session.dismiss_editor((pos.x(), pos.y()))

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        if obj is self.table and event.type() == QEvent.KeyPress:
            key = event.key()
            if key in (Qt.Key_Return, Qt.Key_Enter):
                self.session.workflow.open_editor()
                return True
            if key in (Qt.Key_Up, Qt.Key_Down):
                self.session.workflow.move(-1 if key == Qt.Key_Up else 1)
                return True
            if key == Qt.Key_Escape:
                self.dismiss_editor()
                return True
        return super().eventFilter(obj, event)


def main():
    app = QApplication(sys.argv)
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    window = MainWindow()
    window.show()
    loop.create_task(window.initialize())

    with loop:
        loop.run_forever()


if __name__ == "__main__":
    main()
