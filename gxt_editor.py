import logging
import os
import sys

from PySide6.QtCore import QObject, QRunnable, Qt, QThreadPool, QTimer, Signal
from PySide6.QtGui import QAction, QColor, QKeySequence, QPalette
from PySide6.QtWidgets import (
    QAbstractItemView, QApplication, QDialog, QDialogButtonBox, QFileDialog,
    QHBoxLayout, QHeaderView, QLabel, QLineEdit, QMainWindow, QMenu, QMenuBar,
    QMessageBox, QPushButton, QStatusBar, QTableWidget, QTableWidgetItem,
    QTextEdit, QVBoxLayout, QWidget,
)

# --- 导入核心逻辑 ---
from gxt_entries import (
    KEY_SIZE, PROBLEM_DUPLICATE, PROBLEM_EMPTY, GXTEntry, find_problems,
    normalize_key, sort_entries, validate_key,
)
from gxt_errors import GXTError
from gxt_files import read_gxt, startup_path, write_gxt

log = logging.getLogger(__name__)

APP_TITLE = "GXT 编辑器"
FILE_FILTER = "GXT文件 (*.gxt);;所有文件 (*.*)"
VALUE_DISPLAY_LIMIT = 60
PROBLEM_COLOR = QColor(120, 30, 30)
PROBLEM_TEXT = {
    PROBLEM_EMPTY: "KEY 必填",
    PROBLEM_DUPLICATE: "KEY 重复",
}
KEY_HINT = f"KEY 必须是可见 ASCII（0x20-0x7E），长度 1..{KEY_SIZE} 字节"


# ========== 后台读写 ==========
class _TaskSignals(QObject):
    finished = Signal(object)
    failed = Signal(str)


class _IoTask(QRunnable):
    """在线程池中执行文件读写，结果通过信号回到主线程。"""

    def __init__(self, fn, *args):
        super().__init__()
        self.fn = fn
        self.args = args
        self.signals = _TaskSignals()

    def run(self):
        try:
            result = self.fn(*self.args)
        except (GXTError, OSError) as e:
            log.warning("%s failed: %s", self.fn.__name__, e)
            self.signals.failed.emit(str(e))
            return
        self.signals.finished.emit(result)


# ========== 编辑对话框 ==========
class EditEntryDialog(QDialog):
    def __init__(self, parent=None, title="编辑键值对", key="", value=""):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.resize(560, 320)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("键名 (KEY):"))
        self.key_edit = QLineEdit(key)
        self.key_edit.setMaxLength(KEY_SIZE)
        self.key_edit.textEdited.connect(self._normalize_key)
        layout.addWidget(self.key_edit)

        hint = QLabel(KEY_HINT)
        hint.setStyleSheet("color: #909090;")
        layout.addWidget(hint)

        layout.addWidget(QLabel("值 (VALUE):"))
        self.value_edit = QTextEdit()
        self.value_edit.setAcceptRichText(False)
        self.value_edit.setPlainText(value)
        layout.addWidget(self.value_edit, 1)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _normalize_key(self, text):
        fixed = normalize_key(text)
        if fixed != text:
            pos = self.key_edit.cursorPosition()
            self.key_edit.setText(fixed)
            self.key_edit.setCursorPosition(min(pos, len(fixed)))

    def accept(self):
        try:
            validate_key(self.key_edit.text())
        except GXTError as e:
            QMessageBox.critical(self, "错误", f"键名格式不正确！\n{e}")
            return
        super().accept()

    def get_data(self):
        return GXTEntry(self.key_edit.text(), self.value_edit.toPlainText())


# ========== 主窗口 ==========
class GXTEditorApp(QMainWindow):
    def __init__(self, file_to_open=None):
        super().__init__()
        self.resize(1100, 720)
        self.setAcceptDrops(True)

        # --- 状态数据 ---
        self.entries = []
        self.problems = {}
        self.filepath = None
        self.modified = False
        self.busy = None  # None / "loading" / "saving"
        self.pool = QThreadPool.globalInstance()
        self._tasks = set()

        # --- UI ---
        self._apply_neutral_dark_theme()
        self._setup_menu()
        self._setup_statusbar()
        self._setup_body()
        self.set_modified(False)
        self._update_actions()

        if file_to_open:
            QTimer.singleShot(300, lambda: self.request_open(file_to_open))

    # ====== 主题 ======
    def _apply_neutral_dark_theme(self):
        app = QApplication.instance()
        palette = QPalette()
        dark_bg = QColor(30, 30, 34)
        darker_bg = QColor(25, 25, 28)
        text_color = QColor(220, 220, 220)
        highlight = QColor(0, 122, 204)

        palette.setColor(QPalette.ColorRole.Window, dark_bg)
        palette.setColor(QPalette.ColorRole.WindowText, text_color)
        palette.setColor(QPalette.ColorRole.Base, darker_bg)
        palette.setColor(QPalette.ColorRole.AlternateBase, dark_bg)
        palette.setColor(QPalette.ColorRole.Text, text_color)
        palette.setColor(QPalette.ColorRole.Button, QColor(45, 45, 50))
        palette.setColor(QPalette.ColorRole.ButtonText, text_color)
        palette.setColor(QPalette.ColorRole.Highlight, highlight)
        palette.setColor(QPalette.ColorRole.HighlightedText, Qt.GlobalColor.white)
        app.setPalette(palette)
        app.setStyle("Fusion")

    # ====== 菜单 ======
    def _setup_menu(self):
        menubar = QMenuBar(self)
        self.setMenuBar(menubar)

        file_menu = QMenu("文件", self)
        menubar.addMenu(file_menu)
        self.act_new = self._act("🆕 新建", self.request_new, QKeySequence.StandardKey.New)
        self.act_open = self._act("📂 打开", self.open_file_dialog, QKeySequence.StandardKey.Open)
        self.act_save = self._act("💾 保存", self.save_file, QKeySequence.StandardKey.Save)
        self.act_save_as = self._act("💾 另存为...", self.save_file_as)
        for a in (self.act_new, self.act_open, self.act_save, self.act_save_as):
            file_menu.addAction(a)
        file_menu.addSeparator()
        file_menu.addAction(self._act("❌ 退出", self.close, "Ctrl+Q"))

        edit_menu = QMenu("编辑", self)
        menubar.addMenu(edit_menu)
        self.act_add = self._act("➕ 在末尾新增", self.add_entry)
        self.act_delete = self._act("🗑️ 删除选中", self.delete_entries, QKeySequence.StandardKey.Delete)
        self.act_sort = self._act("🔤 按 KEY 排序", self.sort_by_key)
        for a in (self.act_add, self.act_delete, self.act_sort):
            edit_menu.addAction(a)

    def _setup_statusbar(self):
        self.status = QStatusBar()
        self.setStatusBar(self.status)
        self.update_status("就绪。将 .gxt 文件拖入窗口可打开。")

    def _setup_body(self):
        central = QWidget()
        c_layout = QVBoxLayout(central)

        self.key_search = QLineEdit()
        self.key_search.setPlaceholderText("🔍 搜索键或值...")
        self.key_search.textChanged.connect(self.apply_filter)
        c_layout.addWidget(self.key_search)

        self.table = QTableWidget(0, 3)
        self.table.setHorizontalHeaderLabels(["序号", "键名 (Key)", "值 (Value)"])
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SelectionMode.ExtendedSelection)
        self.table.doubleClicked.connect(self.edit_entry)
        self.table.verticalHeader().setVisible(False)
        self.table.horizontalHeader().setSectionResizeMode(0, QHeaderView.ResizeMode.Fixed)
        self.table.setColumnWidth(0, 50)
        self.table.horizontalHeader().setSectionResizeMode(1, QHeaderView.ResizeMode.ResizeToContents)
        self.table.horizontalHeader().setSectionResizeMode(2, QHeaderView.ResizeMode.Stretch)
        c_layout.addWidget(self.table)

        btns = QHBoxLayout()
        btns.setContentsMargins(0, 5, 0, 0)
        btn_add = QPushButton("➕ 新增")
        btn_add.clicked.connect(self.add_entry)
        btn_sort = QPushButton("🔤 排序")
        btn_sort.clicked.connect(self.sort_by_key)
        btns.addWidget(btn_add)
        btns.addWidget(btn_sort)
        btns.addStretch()
        c_layout.addLayout(btns)

        self.setCentralWidget(central)

    def _act(self, text, slot, shortcut=None):
        a = QAction(text, self)
        if shortcut: a.setShortcut(shortcut)
        a.triggered.connect(slot)
        return a

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls(): event.acceptProposedAction()

    def dropEvent(self, event):
        urls = event.mimeData().urls()
        if not urls: return
        self.request_open(urls[0].toLocalFile())

    # ====== 表格 ======
    def refresh(self):
        self.problems = find_problems(self.entries)
        self.table.setRowCount(0)
        for idx, (key, value) in enumerate(self.entries):
            display_value = value if len(value) <= VALUE_DISPLAY_LIMIT else value[:VALUE_DISPLAY_LIMIT] + "..."
            self._insert_row(idx, key, display_value.replace("\n", " ⏎ "), value)
        self.apply_filter()
        self._update_actions()

    def _insert_row(self, idx, key, display_value, full_value):
        row = self.table.rowCount()
        self.table.insertRow(row)
        idx_item = QTableWidgetItem(str(idx + 1))
        idx_item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
        key_item = QTableWidgetItem(key)
        value_item = QTableWidgetItem(display_value)
        value_item.setToolTip(full_value)

        problem = self.problems.get(idx)
        if problem:
            tip = PROBLEM_TEXT.get(problem, KEY_HINT)
            for item in (idx_item, key_item):
                item.setBackground(PROBLEM_COLOR)
                item.setToolTip(tip)

        self.table.setItem(row, 0, idx_item)
        self.table.setItem(row, 1, key_item)
        self.table.setItem(row, 2, value_item)

    def apply_filter(self):
        keyword = self.key_search.text().lower()
        shown = 0
        for row, (key, value) in enumerate(self.entries):
            hit = not keyword or keyword in key.lower() or keyword in value.lower()
            self.table.setRowHidden(row, not hit)
            shown += hit
        if keyword:
            self.update_status(f"搜索结果: {shown} 个匹配项")

    def _selected_rows(self):
        return sorted({idx.row() for idx in self.table.selectionModel().selectedRows()})

    def edit_entry(self):
        row = self.table.currentRow()
        if row < 0 or self.busy: return
        key, value = self.entries[row]
        dlg = EditEntryDialog(self, title=f"编辑: KEY #{row + 1}", key=key, value=value)
        if dlg.exec() != QDialog.DialogCode.Accepted: return
        entry = dlg.get_data()
        if entry == self.entries[row]: return
        self.entries[row] = entry
        self.set_modified(True)
        self.refresh()
        self.update_status(f"已更新键: {entry.key}")

    def add_entry(self):
        if self.busy: return
        dlg = EditEntryDialog(self, title="添加键值对")
        if dlg.exec() != QDialog.DialogCode.Accepted: return
        entry = dlg.get_data()
        self.entries.append(entry)
        self.set_modified(True)
        self.refresh()
        self.table.scrollToBottom()
        self.update_status(f"已添加键: {entry.key}")

    def delete_entries(self):
        rows = self._selected_rows()
        if not rows or self.busy: return
        if not self._confirm(f"是否删除选中的 {len(rows)} 个键值对？"): return
        for row in reversed(rows):
            del self.entries[row]
        self.set_modified(True)
        self.refresh()
        self.update_status(f"已删除 {len(rows)} 个键值对")

    def sort_by_key(self):
        if len(self.entries) < 2 or self.busy: return
        self.entries = sort_entries(self.entries)
        self.set_modified(True)
        self.refresh()
        self.update_status("已按 KEY 排序")

    # ====== 文件 ======
    def request_new(self):
        if not self._maybe_discard(): return
        self.entries = []
        self.filepath = None
        self.set_modified(False)
        self.refresh()
        self.update_status("已新建空文档")

    def open_file_dialog(self):
        if not self._maybe_discard(): return
        path, _ = QFileDialog.getOpenFileName(self, "打开文件", "", FILE_FILTER)
        if path:
            self._start_load(path)

    def request_open(self, path):
        if not path or not self._maybe_discard(): return
        self._start_load(path)

    def _start_load(self, path):
        self._run_task("loading", read_gxt, (path,),
                       lambda entries: self._on_loaded(path, entries), "打开文件失败")

    def _on_loaded(self, path, entries):
        self.entries = list(entries)
        self.filepath = path
        self.set_modified(False)
        self.refresh()
        self.update_status(f"已打开: {os.path.basename(path)}，共 {len(self.entries)} 条")

    def save_file(self):
        if self.filepath:
            self._start_save(self.filepath)
        else:
            self.save_file_as()

    def save_file_as(self):
        if not self._can_save(): return
        default = self.filepath or "untitled.gxt"
        path, _ = QFileDialog.getSaveFileName(self, "另存为", default, FILE_FILTER)
        if path:
            self._start_save(path)

    def _can_save(self):
        if self.busy: return False
        if self.problems:
            QMessageBox.warning(self, "无法保存", "存在 KEY 校验错误或重复，请先修正")
            return False
        return True

    def _start_save(self, path):
        if not self._can_save(): return
        snapshot = list(self.entries)
        self._run_task("saving", write_gxt, (path, snapshot),
                       lambda _result: self._on_saved(path, snapshot), "保存文件失败")

    def _on_saved(self, path, snapshot):
        self.filepath = path
        # 保存期间没有编辑才算干净（busy 时编辑被禁止）
        self.set_modified(self.entries != snapshot)
        self.update_status(f"GXT 已保存到 {path}")

    def _run_task(self, busy, fn, args, on_done, fail_title):
        if self.busy: return
        task = _IoTask(fn, *args)
        self._tasks.add(task)

        def finish():
            self._tasks.discard(task)
            self.busy = None
            QApplication.restoreOverrideCursor()
            self._update_actions()

        def done(result):
            finish()
            on_done(result)

        def failed(message):
            finish()
            QMessageBox.critical(self, "错误", f"{fail_title}: {message}")
            self.update_status(f"{fail_title}: {message}")

        task.signals.finished.connect(done)
        task.signals.failed.connect(failed)
        self.busy = busy
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        self._update_actions()
        self.update_status("正在读取..." if busy == "loading" else "正在保存...")
        self.pool.start(task)

    # ====== 状态 ======
    def _update_actions(self):
        idle = self.busy is None
        valid = not self.problems
        for a in (self.act_new, self.act_open, self.act_add, self.act_delete):
            a.setEnabled(idle)
        self.act_sort.setEnabled(idle and len(self.entries) >= 2)
        self.act_save.setEnabled(idle and valid)
        self.act_save_as.setEnabled(idle and valid and bool(self.entries))
        self.act_save.setToolTip("存在 KEY 错误/空值/重复" if not valid else "保存（Ctrl+S）")

    def update_status(self, message):
        self.status.showMessage(message)

    def set_modified(self, modified):
        """设置修改状态并更新窗口标题"""
        self.modified = modified
        title = APP_TITLE
        if self.filepath:
            title = f"{os.path.basename(self.filepath)} - {title}"
        if modified:
            title = f"*{title}"
        self.setWindowTitle(title)

    def _confirm(self, text):
        msg_box = QMessageBox(QMessageBox.Icon.Question, "确认", text,
                              QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No, self)
        msg_box.button(QMessageBox.StandardButton.Yes).setText("是")
        msg_box.button(QMessageBox.StandardButton.No).setText("否")
        return msg_box.exec() == QMessageBox.StandardButton.Yes

    def _maybe_discard(self):
        if self.busy: return False
        if not self.modified: return True
        return self._confirm("当前内容尚未保存。继续操作会丢失修改，是否继续？")

    def closeEvent(self, event):
        """重写关闭事件，检查是否有未保存的修改"""
        if self.busy == "saving":
            event.ignore()
            return
        if self.modified and not self._confirm("检测文件在编辑中有变动，是否放弃更改并退出？"):
            event.ignore()
            return
        event.accept()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    QApplication.setHighDpiScaleFactorRoundingPolicy(Qt.HighDpiScaleFactorRoundingPolicy.PassThrough)
    app = QApplication(sys.argv)

    editor = GXTEditorApp(startup_path(sys.argv))
    editor.show()
    sys.exit(app.exec())


# ========== 入口 ==========
if __name__ == "__main__":
    main()
