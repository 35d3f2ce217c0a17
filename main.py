import logging
import tkinter as tk
from tkinter import ttk, filedialog, messagebox, simpledialog
from pathlib import Path

from matplotlib.figure import Figure
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg

import config
import view_state
from aggregation import compute_weights, compute_s_curve, group_summary, project_summary
from charts import draw_gantt, draw_s_curve, export_figure
from commands import TaskStore, TaskLockedError
from date_utils import add_days, format_date_range, format_iso, parse_date, today
from dependencies import CircularDependencyError, InvalidLinkError
from drag_engine import affected_task_ids
from importers import import_tasks, write_tasks_csv
from persistence import JsonProjectStore, Project, PROJECT_EXTENSION
from row_index import build_row_index
from timeline import resolve_time_range

logger = logging.getLogger(__name__)

PREFERENCES_PATH = Path.home() / '.gantt_scurve_preferences.json'
# Pointer distance from a bar edge, in chart pixels, that grabs the edge instead of the bar.
EDGE_GRAB_PX = 6
TREE_COLUMNS = ('cost', 'weight', 'progress', 'period')


class GanttChartApp(tk.Tk):
    def __init__(self):
        super().__init__()
        self.title("Construction Schedule")
        self.geometry("1800x900")

        # --- App State ---
        self.preferences = config.load_preferences(PREFERENCES_PATH)
        self.view = view_state.initial_state(self.preferences.view_mode)
        self.project_store = None
        self.store = None
        self.mapper = None
        self.row_index = None
        self.weights = None
        self.chart_items = []
        self._tree_drag_data = {}

        # --- UI State ---
        self.view_mode_var = tk.StringVar(value=self.view.view_mode)
        self.link_mode_var = tk.BooleanVar(value=False)
        self.cascade_var = tk.BooleanVar(value=config.DEFAULT_CASCADE_POLICY == 'successors')
        self.status_var = tk.StringVar()

        self.create_menu()

        # --- Main Layout ---
        self.main_frame = ttk.Frame(self)
        self.main_frame.pack(side=tk.TOP, fill=tk.BOTH, expand=True)

        self.control_frame = ttk.Frame(self.main_frame, width=520, padding="10")
        self.control_frame.pack(side=tk.LEFT, fill=tk.Y, expand=False)

        self.chart_frame = ttk.Frame(self.main_frame)
        self.chart_frame.pack(side=tk.RIGHT, fill=tk.BOTH, expand=True)

        ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(10, 2)).pack(side=tk.BOTTOM, fill=tk.X)

        # --- Initialization ---
        self.setup_chart_canvas()
        self.build_controls()
        self.new_blank_project()
        self.connect_drag_events()
        self.bind('<Escape>', self.on_escape)
        self.protocol("WM_DELETE_WINDOW", self.on_close)

    def create_menu(self):
        menubar = tk.Menu(self)
        self.config(menu=menubar)

        file_menu = tk.Menu(menubar, tearoff=0)
        menubar.add_cascade(label="File", menu=file_menu)
        file_menu.add_command(label="New Blank Project", command=self.new_blank_project)
        file_menu.add_command(label="Open Project...", command=self.open_project)
        file_menu.add_command(label="Save Project As...", command=self.save_project_as)
        file_menu.add_separator()
        file_menu.add_command(label="Import Tasks...", command=self.import_file)
        file_menu.add_command(label="Export CSV...", command=self.export_csv)
        file_menu.add_command(label="Export Chart...", command=self.export_chart)
        file_menu.add_separator()
        file_menu.add_command(label="Exit", command=self.on_close)

        task_menu = tk.Menu(menubar, tearoff=0)
        menubar.add_cascade(label="Tasks", menu=task_menu)
        task_menu.add_command(label="Add Task...", command=self.add_task)
        task_menu.add_command(label="Remove Task", command=self.remove_task)
        task_menu.add_separator()
        task_menu.add_checkbutton(label="Link Mode", variable=self.link_mode_var, command=self.on_link_mode_change)
        task_menu.add_checkbutton(label="Shift Successors When Moving", variable=self.cascade_var)

        view_menu = tk.Menu(menubar, tearoff=0)
        menubar.add_cascade(label="View", menu=view_menu)
        for mode, settings in config.view_mode_config.items():
            view_menu.add_radiobutton(label=settings['label'], value=mode, variable=self.view_mode_var,
                                      command=self.on_view_mode_change)

    def setup_chart_canvas(self):
        self.figure = Figure(figsize=(14, 8), dpi=100)
        grid = self.figure.add_gridspec(2, 1, height_ratios=[3, 1])
        self.ax = self.figure.add_subplot(grid[0])
        self.curve_ax = self.figure.add_subplot(grid[1])
        self.canvas = FigureCanvasTkAgg(self.figure, self.chart_frame)
        self.canvas.get_tk_widget().pack(side=tk.TOP, fill=tk.BOTH, expand=True)

    def connect_drag_events(self):
        self.canvas.mpl_connect('button_press_event', self.on_press)
        self.canvas.mpl_connect('motion_notify_event', self.on_motion)
        self.canvas.mpl_connect('button_release_event', self.on_release)

    def build_controls(self):
        tree_frame = ttk.LabelFrame(self.control_frame, text="Schedule", padding="5")
        tree_frame.pack(fill=tk.BOTH, expand=True)

        self.tree = ttk.Treeview(tree_frame, columns=TREE_COLUMNS, selectmode='browse')
        self.tree.heading('#0', text="Task")
        self.tree.column('#0', width=220)
        for column, title, width in (('cost', "Cost", 80), ('weight', "Weight %", 64),
                                     ('progress', "Progress %", 70), ('period', "Period", 150)):
            self.tree.heading(column, text=title)
            self.tree.column(column, width=width, anchor='e' if column != 'period' else 'w')
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)

        scrollbar = ttk.Scrollbar(tree_frame, orient=tk.VERTICAL, command=self.tree.yview)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        self.tree.configure(yscrollcommand=scrollbar.set)

        self.tree.bind('<Double-1>', self.on_tree_double_click)
        self.tree.bind('<ButtonPress-1>', self.on_tree_press)
        self.tree.bind('<ButtonRelease-1>', self.on_tree_release)
        self.apply_visible_columns()

    def apply_visible_columns(self):
        columns = self.preferences.visible_columns
        self.tree['displaycolumns'] = [c for c in TREE_COLUMNS if columns.get(c, True)]

    # --- Project ---

    def _bind_project(self, project_store):
        self.project_store = project_store
        self.store = TaskStore(project_store.tasks(), project_store, on_failure=self.on_store_failure)
        self.view = view_state.GanttViewState(
            view_mode=self.view.view_mode,
            cell_width=self.view.cell_width,
        )
        self.on_ui_change()

    def update_window_title(self):
        project = self.project_store.project
        if self.project_store.path:
            self.title(f"{project.name} - {self.project_store.path}")
        else:
            self.title(f"{project.name} - Construction Schedule")

    def new_blank_project(self):
        self._bind_project(JsonProjectStore(None, Project()))

    def open_project(self):
        filepath = filedialog.askopenfilename(
            filetypes=[("Gantt Project Files", f"*{PROJECT_EXTENSION}"), ("All Files", "*.*")]
        )
        if not filepath:
            return
        try:
            project_store = JsonProjectStore.load(filepath)
        except (OSError, ValueError) as e:
            messagebox.showerror("Open Project", f"Could not open the project: {e}")
            return
        self._bind_project(project_store)

    def save_project_as(self):
        filepath = filedialog.asksaveasfilename(
            defaultextension=PROJECT_EXTENSION,
            filetypes=[("Gantt Project Files", f"*{PROJECT_EXTENSION}"), ("All Files", "*.*")]
        )
        if not filepath:
            return
        self.project_store.project.name = Path(filepath).stem
        try:
            self.project_store.save(filepath)
        except OSError as e:
            messagebox.showerror("Save Project", f"Could not save the project: {e}")
            return
        self.update_window_title()

    def import_file(self):
        filepath = filedialog.askopenfilename(
            filetypes=[("CSV or Excel", "*.csv *.xlsx *.xls"), ("All Files", "*.*")]
        )
        if not filepath:
            return
        existing = list(self.store.tasks.values())
        try:
            imported = import_tasks(filepath, existing)
        except (OSError, ValueError, ImportError) as e:
            messagebox.showerror("Error Reading File", f"An error occurred while reading the file: {e}")
            return
        self.project_store.replace_tasks(existing + imported)
        self._bind_project(self.project_store)
        messagebox.showinfo("Import", f"Imported {len(imported)} task(s).")

    def export_csv(self):
        filepath = filedialog.asksaveasfilename(
            defaultextension=".csv", filetypes=[("CSV", "*.csv"), ("All Files", "*.*")]
        )
        if not filepath:
            return
        try:
            write_tasks_csv(filepath, list(self.store.tasks.values()))
        except OSError as e:
            messagebox.showerror("Export Error", f"An error occurred while exporting the tasks: {e}")

    def export_chart(self):
        if not self.store.tasks:
            messagebox.showinfo("Export Chart", "There is nothing to export.")
            return
        filepath = filedialog.asksaveasfilename(
            title="Export Gantt Chart",
            defaultextension=".png",
            filetypes=[
                ("PNG Image", "*.png"),
                ("PDF Document", "*.pdf"),
                ("SVG Vector Image", "*.svg"),
                ("All Files", "*.*")
            ]
        )
        if not filepath:
            return
        try:
            export_figure(self.figure, filepath)
            messagebox.showinfo("Export Successful", f"Chart successfully saved to\n{filepath}")
        except (OSError, ValueError) as e:
            messagebox.showerror("Export Error", f"An error occurred while exporting the chart: {e}")

    # --- Tasks ---

    def _selected_row(self):
        selection = self.tree.selection()
        if not selection or self.row_index is None:
            return None
        return next((row for row in self.row_index.rows if row.key == selection[0]), None)

    def add_task(self):
        name = simpledialog.askstring("Add Task", "Task name:", parent=self)
        if not name:
            return
        row = self._selected_row()
        start = today()
        fields = {
            'name': name,
            'plan_start_date': format_iso(start),
            'plan_end_date': format_iso(add_days(start, 6)),
        }
        if row is not None:
            fields.update(category=row.category, subcategory=row.subcategory, subsubcategory=row.subsubcategory)
            if row.task is not None and row.task.is_group:
                fields['parent_task_id'] = row.task.id
        try:
            self.store.create_task(fields)
        except (OSError, ValueError) as e:
            messagebox.showerror("Add Task", f"Could not create the task: {e}")
            return
        self.on_ui_change()

    def remove_task(self):
        row = self._selected_row()
        if row is None or row.task is None:
            messagebox.showwarning("Remove Task", "Please select a task to remove.")
            return
        if not messagebox.askyesno("Remove Task", f"Remove '{row.task.name}'?"):
            return
        try:
            self.store.delete_task(row.task.id)
        except (TaskLockedError, ValueError) as e:
            messagebox.showwarning("Remove Task", str(e))
        self.on_ui_change()

    def on_store_failure(self, command, error):
        messagebox.showerror("Save Error", f"Could not save '{command.description}': {error}\nThe change was reverted.")

    # --- Drawing ---

    def on_ui_change(self):
        self.update_window_title()
        self.calculate_and_draw()
        self.populate_treeview()

    def calculate_and_draw(self):
        project = self.project_store.project
        index = self.store.index
        reference = parse_date(self.preferences.reference_date) or today()
        time_range = resolve_time_range(project.start_date, project.end_date)

        self.mapper = self.view.mapper(time_range)
        self.row_index = build_row_index(index, self.view.collapse, project.category_order, project.subcategory_order)
        self.weights = compute_weights(index)
        self.chart_items = draw_gantt(
            self.ax, index, self.mapper, self.row_index, self.view, self.weights,
            self.preferences.category_colors, reference,
        )
        draw_s_curve(self.curve_ax, compute_s_curve(index, time_range, self.weights, reference))

        summary = project_summary(index, time_range, self.weights, reference)
        self.status_var.set(
            f"{summary.task_count} task(s)   Progress {summary.progress:.1f}% "
            f"(plan {summary.planned_progress:.1f}%)   Cost {summary.total_cost:,.0f}   "
            f"Weighting: {summary.basis}"
        )
        self.canvas.draw_idle()

    def populate_treeview(self):
        self.tree.delete(*self.tree.get_children())
        index = self.store.index
        parents = {}
        for row in self.row_index.rows:
            if row.kind == 'category':
                parent = ''
                text, values = row.category, ('', '', '', '')
            elif row.kind == 'subcategory':
                parent = parents.get(row.category, '')
                text, values = row.subcategory, ('', '', '', '')
            elif row.kind == 'subsubcategory':
                parent = parents.get(f"{row.category}::{row.subcategory}", '')
                text, values = row.subsubcategory, ('', '', '', '')
            else:
                task = row.task
                parent = parents.get(task.parent_task_id) or parents.get(
                    f"{row.category}::{row.subcategory}::{row.subsubcategory}"
                ) or parents.get(f"{row.category}::{row.subcategory}") or parents.get(row.category, '')
                if index.has_children(task.id):
                    summary = group_summary(index, task.id, self.weights)
                    values = (f"{summary.total_cost:,.0f}", f"{summary.total_weight:.2f}",
                              f"{summary.progress:.0f}", format_date_range(summary.plan_start, summary.plan_end))
                else:
                    values = (f"{task.cost or 0:,.0f}", f"{self.weights.weight_of(task.id):.2f}",
                              f"{task.progress or 0:.0f}", format_date_range(task.plan_start, task.plan_end))
                text = task.name or task.id
            self.tree.insert(parent, tk.END, iid=row.key, text=text, values=values,
                             open=not self.view.collapse.is_collapsed(row.key))
            parents[row.key] = row.key

    # --- Chart events ---

    def _item_at(self, event):
        # Later items are drawn on top.
        for item in reversed(self.chart_items):
            contains, _ = item['patch'].contains(event)
            if contains:
                return item
        return None

    def on_press(self, event):
        if event.inaxes != self.ax or event.xdata is None:
            return
        item = self._item_at(event)
        if item is None or item['row'].task is None:
            return
        task = item['row'].task
        patch = item['patch']
        left, right = patch.get_x(), patch.get_x() + patch.get_width()

        if self.link_mode_var.get():
            side = 'start' if event.xdata - left < (right - left) / 2 else 'end'
            self.on_anchor_click(task.id, side)
            return
        if item['bar_type'] == 'group':
            return

        if abs(event.xdata - left) <= EDGE_GRAB_PX:
            kind = 'resize-start'
        elif abs(event.xdata - right) <= EDGE_GRAB_PX:
            kind = 'resize-end'
        else:
            kind = 'move'
        try:
            self.view = view_state.begin_drag(self.view, task, kind, item['bar_type'], event.xdata, self.store.index)
        except ValueError as e:
            messagebox.showwarning("Move Task", str(e))
            return
        cursor = "sb_h_double_arrow" if kind != 'move' else "hand2"
        self.canvas.get_tk_widget().config(cursor=cursor)

    def on_motion(self, event):
        if not self.view.is_dragging or event.xdata is None:
            return
        previous = self.view.drag
        self.view = view_state.apply_drag_tick(self.view, event.xdata, self.mapper)
        if self.view.drag != previous:
            self.calculate_and_draw()

    def on_release(self, event):
        if not self.view.is_dragging:
            return
        drag = self.view.drag
        policy = 'successors' if self.cascade_var.get() else 'none'
        self.view, updates = view_state.release_drag(self.view, self.store.index, policy)
        self.canvas.get_tk_widget().config(cursor="")
        if updates:
            ids = affected_task_ids(drag, updates)
            self.view = view_state.mark_updating(self.view, ids)
            try:
                self.store.commit(updates, description=f"{drag.kind} {drag.bar_type} bar")
            except TaskLockedError as e:
                messagebox.showwarning("Move Task", str(e))
            finally:
                self.view = view_state.clear_updating(self.view, ids)
        self.on_ui_change()

    def on_escape(self, event=None):
        self.view = view_state.clear_link_source(view_state.cancel_drag(self.view))
        self.canvas.get_tk_widget().config(cursor="")
        self.calculate_and_draw()

    def on_link_mode_change(self):
        self.view = view_state.clear_link_source(self.view)

    def on_anchor_click(self, task_id, side):
        try:
            self.view, link = view_state.click_anchor(self.view, task_id, side)
        except InvalidLinkError as e:
            self.view = view_state.clear_link_source(self.view)
            messagebox.showwarning("Link Tasks", str(e))
            return
        if link is None:
            return
        try:
            self.store.link(*link)
        except CircularDependencyError as e:
            messagebox.showerror("Circular Dependency", str(e))
        except (InvalidLinkError, TaskLockedError) as e:
            messagebox.showwarning("Link Tasks", str(e))
        self.calculate_and_draw()

    def on_view_mode_change(self):
        self.view = view_state.set_view_mode(self.view, self.view_mode_var.get())
        self.preferences.view_mode = self.view.view_mode
        self.calculate_and_draw()

    # --- Treeview events ---

    def on_tree_double_click(self, event):
        iid = self.tree.identify_row(event.y)
        if not iid:
            return
        self.view = view_state.toggle_collapse(self.view, iid)
        self.on_ui_change()

    def on_tree_press(self, event):
        iid = self.tree.identify_row(event.y)
        self._tree_drag_data = {'iid': iid} if iid in self.store.tasks else {}

    def on_tree_release(self, event):
        source = self._tree_drag_data.get('iid')
        self._tree_drag_data = {}
        target = self.tree.identify_row(event.y)
        if not source or not target or source == target or target not in self.store.tasks:
            return

        x, y, width, height = self.tree.bbox(target)
        offset = event.y - y
        if offset < height / 3:
            position = 'above'
        elif offset > height * 2 / 3 or not self.store.tasks[target].is_group:
            position = 'below'
        else:
            position = 'child'
        try:
            self.store.drop_row(source, target, position)
        except (ValueError, TaskLockedError) as e:
            messagebox.showwarning("Move Task", str(e))
        self.on_ui_change()

    def on_close(self):
        try:
            config.save_preferences(PREFERENCES_PATH, self.preferences)
        except OSError:
            logger.warning("Could not save preferences to %s", PREFERENCES_PATH)
        self.destroy()


def main():
    config.configure_logging()
    app = GanttChartApp()
    app.mainloop()


if __name__ == "__main__":
    main()
