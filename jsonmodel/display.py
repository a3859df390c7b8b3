#  -*- coding: utf-8 -*-
"""
Rich terminal display for models and arrays.

``Displayable`` is an opt-in mixin: a model renders as a panel holding a
key/value form of its attributes, an array as a panel holding a table built
from a ``pandas.DataFrame`` of its elements. Styling comes from
``DisplaySettings``, itself a persistable model so themes can be saved.

Examples
--------
>>> class Sensor(Displayable, Model):
...     name = JsonAttribute(str)
...     temperature = JsonAttribute(float)
>>> print(Sensor(name='north', temperature=21.5))
"""

from __future__ import annotations

import pandas

from io import StringIO

from rich import box
from rich.align import Align
from rich.console import Console, RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from jsonmodel.array import Array
from jsonmodel.attributes import JsonAttribute
from jsonmodel.model import Model
from jsonmodel.persistence import Persistable

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any


PANEL_BOXES: tuple[str, ...] = ('ROUNDED', 'SQUARE', 'HEAVY', 'DOUBLE', 'ASCII', 'MINIMAL', 'SIMPLE')


# ========== ========== ========== ========== ========== settings
class DisplaySettings(Persistable, Model):
    """
    Styling used by ``Displayable``.

    Style strings use Rich's syntax (``'bold red'``, ``'#FF0000'`` ...).
    Being a persistable model, settings validate themselves and can be saved
    as ``.disp`` theme files::

        settings = DisplaySettings(panel_border_style='green')
        settings.save('green_theme')
        obj.display_settings = DisplaySettings.load_file('green_theme.disp')
    """

    extension = '.disp'

    console_width = JsonAttribute(int, default=150, validation={'numericality': {'only_integer': True,
                                                                                 'greater_than': 0}},
                                  doc="Maximum console output width in characters.")

    property_style = JsonAttribute(str, default='bold bright_yellow',
                                   doc="Style of the attribute labels in forms.")

    panel_border_style = JsonAttribute(str, default='bright_cyan')

    panel_box = JsonAttribute(str, default='ROUNDED', validation={'inclusion': PANEL_BOXES},
                              doc="Name of a box style from ``rich.box``.")

    panel_title_align = JsonAttribute(str, default='center',
                                      validation={'inclusion': ('left', 'center', 'right')})

    table_index_style = JsonAttribute(str)

    table_header_style = JsonAttribute(str, default='bold bright_yellow')

    table_round_floats = JsonAttribute(int, validation={'numericality': {'greater_than_or_equal_to': 0},
                                                        'allow_nil': True},
                                       doc="Decimal places of float columns; None keeps full precision.")

    table_spacing = JsonAttribute(int, default=4, validation={'numericality': {'greater_than_or_equal_to': 0}})


# ========== ========== ========== ========== ========== mixin
class Displayable:
    """
    Mixin rendering a model or array with Rich.

    ``__str__`` returns the rendered panel (with ANSI codes) and
    ``__rich__`` lets a Rich console print the object directly. Override
    ``_title`` or ``_content`` to customise the panel.
    """

    # ========== ========== ========== ========== ========== special methods
    def __str__(self) -> str:
        string_io = StringIO()
        console = Console(file=string_io, force_terminal=True, width=self.display_settings.console_width)
        console.print(self._display_panel())

        return string_io.getvalue()

    def __rich__(self) -> RenderableType:
        return self._display_panel()

    # ========== ========== ========== ========== ========== protected methods
    def _title(self) -> Text:
        return Text(type(self).__name__, style='bold')

    def _content(self) -> RenderableType:
        if isinstance(self, Model):
            return self.format_as_form(self._form_data())

        if isinstance(self, Array):

            if self.values is None:
                return Text('null', style='dim')

            return self.format_as_table(self._frame())

        raise TypeError(f"Don't know how to display {type(self).__name__}. Override _content")

    def _display_panel(self) -> Panel:
        settings = self.display_settings

        return Panel(self._content(),
                     title=self._title(),
                     border_style=settings.panel_border_style,
                     title_align=settings.panel_title_align,
                     expand=False,
                     box=getattr(box, settings.panel_box))

    def _form_data(self) -> dict[str, Any]:
        cls = type(self)
        data = {name: getattr(self, name) for name in cls.json_attributes}
        data.update(cls.fixed_attributes)

        return {name: value if isinstance(value, Displayable) else Text(str(value))
                for name, value in data.items()}

    def _frame(self) -> pandas.DataFrame:
        rows = []

        for value in self.values:

            if isinstance(value, Model):
                row = {name: getattr(value, name) for name in type(value).json_attributes}
                row.update(type(value).fixed_attributes)
                rows.append(row)

            else:
                rows.append({'value': value})

        return pandas.DataFrame(rows)

    # ========== ========== ========== ========== ========== public methods
    def format_as_form(self, data: dict[str, Any]) -> Table:
        """Two-column grid: labels on the left, values on the right."""
        form = Table.grid(padding=(0, 4), expand=False)
        form.add_column(justify='left', style=self.display_settings.property_style)
        form.add_column(justify='left')

        for label, value in data.items():
            form.add_row(f'{label}:', value)

        return form

    def format_as_table(self, frame: pandas.DataFrame, show_index: bool = True, max_rows: int = 31) -> Table:
        """
        Render a DataFrame as a grid.

        Numeric columns are right-aligned, anything else left-aligned. Float
        columns are rounded to ``table_round_floats`` places when it is set.
        Frames longer than ``max_rows`` show their head and tail around an
        ellipsis row.
        """
        settings = self.display_settings
        frame = frame.reset_index() if show_index else frame.copy()

        table = Table.grid(padding=(0, settings.table_spacing), expand=False)

        for column in frame.columns:
            numeric = pandas.api.types.is_numeric_dtype(frame[column])
            table.add_column(justify='right' if numeric else 'left')

        table.add_row(*(Align(escape(str(column)), 'center') for column in frame.columns),
                      style=settings.table_header_style)

        if settings.table_round_floats is not None:
            digits = settings.table_round_floats

            for column in frame.select_dtypes(include='float').columns:
                frame[column] = frame[column].apply(lambda value: f'{value:.{digits}f}')

        text_frame = frame.astype(str)

        def add_rows(rows: pandas.DataFrame) -> None:
            for _, row in rows.iterrows():
                cells = [Text(cell) for cell in row.values]

                if show_index and settings.table_index_style:
                    cells[0].stylize(settings.table_index_style)

                table.add_row(*cells)

        if len(text_frame) <= max_rows:
            add_rows(text_frame)

        else:
            half = (max_rows - 1) // 2
            add_rows(text_frame.head(half))
            table.add_row(*(Align.center('...') for _ in frame.columns))
            add_rows(text_frame.tail(half))

        return table

    def to_html(self) -> str:
        console = Console(record=True, file=StringIO(), width=self.display_settings.console_width)
        console.print(self)
        return console.export_html()

    def to_svg(self) -> str:
        console = Console(record=True, file=StringIO(), width=self.display_settings.console_width)
        console.print(self)
        return console.export_svg()

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def display_settings(self) -> DisplaySettings:
        """Settings used to render this object; each instance gets its own by default."""
        settings = self.__dict__.get('_display_settings')

        if settings is None:
            settings = self.__dict__['_display_settings'] = DisplaySettings()

        return settings

    @display_settings.setter
    def display_settings(self, settings: DisplaySettings) -> None:
        self.__dict__['_display_settings'] = settings


__all__ = [
    'DisplaySettings',
    'Displayable',
]
