from pathlib import Path

from matplotlib.patches import Patch

import config
from aggregation import category_summary, compute_weights, group_summary
from dependencies import build_connectors
from drag_engine import preview_dates
from row_index import build_row_index
from timeline import build_timeline

EXPORT_FORMATS = ('.png', '.pdf', '.svg')

# Rows are one data unit tall on the y axis; bars sit on the row centre.
PLAN_BAR_HEIGHT = 0.5
ACTUAL_BAR_HEIGHT = 0.2


def category_color(category, categories, category_colors=None):
    if category_colors and category in category_colors:
        return category_colors[category]
    position = categories.index(category) if category in categories else 0
    return config.category_palette[position % len(config.category_palette)]


def _row_label(row):
    if row.kind == 'task':
        return ('    ' * row.level) + (row.task.name or row.task.id)
    if row.kind == 'category':
        return row.category
    if row.kind == 'subcategory':
        return '  ' + row.subcategory
    return '    ' + row.subsubcategory


def _summary_bar(ax, mapper, y, start, end, color):
    geometry = mapper.bar_geometry(start, end)
    if geometry is None:
        return None
    bars = ax.barh(y, geometry.width, left=geometry.left, height=PLAN_BAR_HEIGHT / 2,
                   color=color, alpha=0.6, edgecolor='none')
    return bars.patches[0]


def draw_gantt(ax, index, mapper, row_index=None, state=None, weights=None,
               category_colors=None, today=None):
    """
    Draws the visible rows onto ax in chart pixel space (x) and row units (y).

    Returns the chart items (row, bar type and patch) so callers can hit-test
    pointer events against the drawn bars.
    """
    ax.clear()
    if row_index is None:
        row_index = build_row_index(index, state.collapse if state else None)
    weights = weights or compute_weights(index)
    drag = state.drag if state else None
    updating = state.updating if state else frozenset()
    categories = list(index.grouped)
    chart_items = []

    if not len(row_index):
        ax.text(0.5, 0.5, "No tasks to display.\nUse the File menu to start.",
                horizontalalignment='center', verticalalignment='center', transform=ax.transAxes)
        return chart_items

    for position, row in enumerate(row_index.rows):
        y = position + 0.5
        color = category_color(row.category, categories, category_colors)

        if row.kind == 'category':
            summary = category_summary(index, weights, row.category)
            _summary_bar(ax, mapper, y, summary.plan_start, summary.plan_end, color)
            continue
        if row.kind == 'subcategory':
            summary = category_summary(index, weights, row.category, row.subcategory)
            _summary_bar(ax, mapper, y, summary.plan_start, summary.plan_end, color)
            continue
        if row.kind == 'subsubcategory':
            summary = category_summary(index, weights, row.category, row.subcategory, row.subsubcategory)
            _summary_bar(ax, mapper, y, summary.plan_start, summary.plan_end, color)
            continue

        task = row.task
        alpha = 0.5 if task.id in updating else 1.0

        if index.has_children(task.id):
            summary = group_summary(index, task.id, weights)
            patch = _summary_bar(ax, mapper, y, summary.plan_start, summary.plan_end,
                                 task.color or config.group_bar_color)
            if patch is not None:
                chart_items.append({'row': row, 'bar_type': 'group', 'patch': patch})
            continue

        for bar_type in ('plan', 'actual'):
            dates = preview_dates(drag, task, bar_type)
            if dates is None:
                continue
            geometry = mapper.bar_geometry(*dates)
            if geometry is None:
                continue
            if bar_type == 'plan':
                bars = ax.barh(y, geometry.width, left=geometry.left, height=PLAN_BAR_HEIGHT,
                               color=config.plan_bar_color, alpha=alpha, edgecolor='none')
            else:
                bar_color = config.status_colors.get(task.status, config.actual_bar_color)
                bars = ax.barh(y + PLAN_BAR_HEIGHT / 2 - ACTUAL_BAR_HEIGHT / 2, geometry.width,
                               left=geometry.left, height=ACTUAL_BAR_HEIGHT,
                               color=bar_color, alpha=alpha, edgecolor='none')
            chart_items.append({'row': row, 'bar_type': bar_type, 'patch': bars.patches[0]})

    for connector in build_connectors(index, row_index, mapper, row_height=1):
        xs = [point[0] for point in connector.points]
        ys = [point[1] for point in connector.points]
        ax.plot(xs, ys, color=config.connector_color, lw=1.5)
        ax.annotate('', xy=connector.points[-1], xytext=connector.points[-2],
                    arrowprops=dict(arrowstyle='-|>', color=config.connector_color, lw=1.5))

    today_x = mapper.today_offset(today)
    if today_x is not None:
        ax.axvline(today_x, color='red', ls='--', lw=1)

    ax.set_xlim(0, mapper.chart_width)
    ax.set_ylim(len(row_index), 0)
    ax.set_yticks([position + 0.5 for position in range(len(row_index))])
    ax.set_yticklabels([_row_label(row) for row in row_index.rows], fontsize=8)

    cells = mapper.header_cells(build_timeline(mapper.time_range, mapper.view_mode))
    ax.set_xticks([cell.left for cell in cells])
    ax.set_xticklabels([cell.label for cell in cells], fontsize=8, ha='left')
    ax.grid(axis='x', ls=':', alpha=0.5)

    legend_patches = [Patch(color=config.plan_bar_color, label='Plan')]
    legend_patches += [Patch(color=color, label=status) for status, color in config.status_colors.items()]
    ax.legend(handles=legend_patches, loc='lower right', fontsize=8)
    return chart_items


def draw_s_curve(ax, curve):
    ax.clear()
    ax.plot(curve.dates, curve.plan, color=config.plan_bar_color, lw=2, label='Plan')
    known = [(d, value) for d, value in zip(curve.dates, curve.actual) if value is not None]
    if known:
        ax.plot([d for d, _ in known], [value for _, value in known],
                color=config.actual_bar_color, lw=2, label='Actual')
    ax.set_ylim(0, 100)
    ax.set_ylabel('Cumulative progress (%)')
    ax.grid(True, ls=':', alpha=0.5)
    ax.legend(loc='upper left')


def export_figure(figure, filepath):
    suffix = Path(filepath).suffix.lower()
    if suffix not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{suffix}' (use PNG, PDF or SVG)")
    figure.savefig(filepath, bbox_inches='tight', dpi=300)
