"""
Deformer Settings & Control Pair Panel
"""
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QLabel, QPushButton, QDoubleSpinBox, QGroupBox, QFormLayout, QCheckBox, QListWidget
)
from PySide6.QtCore import Signal, Qt

from gcodedeformer.model.state import DeformerParams, EditSession


class DeformerControlPanel(QWidget):
    # Emitted with a fresh DeformerParams whenever a setting changes
    params_changed = Signal(object)
    # Emitted with the index of the pair to delete
    pair_delete_requested = Signal(int)

    def __init__(self, session: EditSession) -> None:
        super().__init__()
        self.session = session

        layout = QVBoxLayout(self)

        # --- Settings Group ---
        grp = QGroupBox("Deformer Settings")
        form = QFormLayout(grp)

        params = self.session.params

        self.chk_lock_ground = QCheckBox("")
        self.chk_lock_ground.setChecked(params.lock_to_ground)
        form.addRow("Lock Ground", self.chk_lock_ground)

        self.chk_solve_rotation = QCheckBox("")
        self.chk_solve_rotation.setChecked(params.solve_rotation)
        form.addRow("Solve Rotation", self.chk_solve_rotation)

        self.chk_edit_attachment = QCheckBox("")
        self.chk_edit_attachment.setChecked(params.edit_attachment_points)
        form.addRow("Edit Attachment Points", self.chk_edit_attachment)

        self.chk_hide_travel = QCheckBox("")
        self.chk_hide_travel.setChecked(params.hide_travel_moves)
        form.addRow("Hide Travel Moves", self.chk_hide_travel)

        self.spin_fall_off = QDoubleSpinBox()
        self.spin_fall_off.setRange(0.1, 30.0)
        self.spin_fall_off.setSingleStep(0.5)
        self.spin_fall_off.setDecimals(2)
        self.spin_fall_off.setValue(params.fall_off_exponent)
        form.addRow("Fall-off Exponent:", self.spin_fall_off)

        for chk in (self.chk_lock_ground, self.chk_solve_rotation, self.chk_edit_attachment, self.chk_hide_travel):
            chk.toggled.connect(self.on_settings_changed)
        self.spin_fall_off.valueChanged.connect(self.on_settings_changed)

        layout.addWidget(grp)

        # --- Pairs Group ---
        grp_pairs = QGroupBox("Control Pairs")
        pairs_layout = QVBoxLayout(grp_pairs)

        self.list_pairs = QListWidget()
        pairs_layout.addWidget(self.list_pairs)

        self.btn_delete = QPushButton("Delete Selected Pair")
        self.btn_delete.clicked.connect(self.on_delete_clicked)
        pairs_layout.addWidget(self.btn_delete)

        layout.addWidget(grp_pairs)

        # --- Status Info ---
        self.lbl_status = QLabel("Open a G-code file to start.")
        self.lbl_status.setAlignment(Qt.AlignCenter)
        self.lbl_status.setWordWrap(True)
        self.lbl_status.setStyleSheet("color: gray;")
        layout.addWidget(self.lbl_status)

        layout.addStretch()

    # --- PROPERTIES ---

    @property
    def status_message(self) -> str:
        return self.lbl_status.text()

    @status_message.setter
    def status_message(self, text: str) -> None:
        self.lbl_status.setText(text)
        self.lbl_status.setStyleSheet("color: gray;")

    def set_status_styled(self, text: str, color: str, bold: bool = False) -> None:
        self.lbl_status.setText(text)
        weight = "bold" if bold else "normal"
        self.lbl_status.setStyleSheet(f"color: {color}; font-weight: {weight};")

    # --- SLOTS ---

    def current_params(self) -> DeformerParams:
        return DeformerParams(
            lock_to_ground=self.chk_lock_ground.isChecked(),
            fall_off_exponent=float(self.spin_fall_off.value()),
            solve_rotation=self.chk_solve_rotation.isChecked(),
            edit_attachment_points=self.chk_edit_attachment.isChecked(),
            hide_travel_moves=self.chk_hide_travel.isChecked(),
        )

    def on_settings_changed(self, *_) -> None:
        self.params_changed.emit(self.current_params())

    def on_delete_clicked(self) -> None:
        row = self.list_pairs.currentRow()
        if row >= 0:
            self.pair_delete_requested.emit(row)

    def refresh_pairs(self) -> None:
        """Rebuild the pair list from the session."""
        selected = self.list_pairs.currentRow()
        self.list_pairs.clear()
        for i, pair in enumerate(self.session.pairs):
            b = pair.bind_position
            d = pair.translation
            self.list_pairs.addItem(
                f"#{i + 1}  ({b[0]:.2f}, {b[1]:.2f}, {b[2]:.2f})  Δ({d[0]:+.2f}, {d[1]:+.2f}, {d[2]:+.2f})"
            )
        if 0 <= selected < self.list_pairs.count():
            self.list_pairs.setCurrentRow(selected)
        self.btn_delete.setEnabled(bool(self.session.pairs))

    def update_status_from_state(self) -> None:
        if self.session.is_loaded:
            self.set_status_styled(
                f"{len(self.session.toolpath.layers)} layers, {self.session.vertex_count} vertices, "
                f"{len(self.session.pairs)} pair(s).",
                "blue",
            )
        else:
            self.status_message = "Open a G-code file to start."
