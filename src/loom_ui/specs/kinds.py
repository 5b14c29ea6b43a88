"""
Node kinds.

The closed set of component kinds a UI block can produce. Renderers must
provide one method per kind.
"""

from enum import StrEnum


class NodeKind(StrEnum):
    """Every component kind the builder can emit."""

    # Inputs (bound to a state key)
    TEXT_FIELD = "text_field"
    TEXT_AREA = "text_area"
    CHECKBOX = "checkbox"
    SELECT = "select"
    RADIO_GROUP = "radio_group"
    CHECKBOX_GROUP = "checkbox_group"
    ITEM = "item"
    TAG_BUTTONS = "tag_buttons"

    # Clickables (carry a deterministic node id)
    BUTTON = "button"
    MENU_ITEM = "menu_item"
    EXTERNAL_LINK_BUTTON = "external_link_button"

    # Display
    TEXT = "text"
    MARKDOWN = "markdown"
    HEADER = "header"
    ALERT = "alert"
    PROGRESS_BAR = "progress_bar"
    SPINNER = "spinner"
    STATUS_BADGE = "status_badge"
    SCORE_TABLE = "score_table"
    CHART = "chart"
    TOAST_CONTAINER = "toast_container"
    THEME_SWITCHER = "theme_switcher"

    # Lesson text with glossary tooltips
    LESSON_TEXT = "lesson_text"
    PHRASE = "phrase"
    TERM = "term"

    # Layout
    DIV = "div"
    CARD = "card"
    CARD_HEADER = "card_header"
    CARD_BODY = "card_body"
    CARD_FOOTER = "card_footer"
    VSTACK = "vstack"
    HSTACK = "hstack"
    GRID = "grid"
    COLUMNS = "columns"
    COLUMN = "column"
    COLLAPSIBLE = "collapsible"

    # Overlays and navigation
    MODAL = "modal"
    MODAL_FOOTER = "modal_footer"
    TABS = "tabs"
    TAB = "tab"
    BREADCRUMBS = "breadcrumbs"
    CRUMB = "crumb"
    DROPDOWN = "dropdown"
    TRIGGER = "trigger"
    MENU = "menu"

    # Deferred-submission form
    FORM = "form"


# Kinds whose key holds user input; these are the keys returned by
# headless submission.
INPUT_KINDS = frozenset(
    {
        NodeKind.TEXT_FIELD,
        NodeKind.TEXT_AREA,
        NodeKind.CHECKBOX,
        NodeKind.SELECT,
        NodeKind.RADIO_GROUP,
        NodeKind.CHECKBOX_GROUP,
        NodeKind.TAG_BUTTONS,
    }
)

CLICKABLE_KINDS = frozenset(
    {
        NodeKind.BUTTON,
        NodeKind.MENU_ITEM,
        NodeKind.EXTERNAL_LINK_BUTTON,
    }
)

# Kinds that must sit directly inside a specific parent kind.
REQUIRED_PARENT: dict[NodeKind, NodeKind] = {
    NodeKind.ITEM: NodeKind.CHECKBOX_GROUP,
    NodeKind.MODAL_FOOTER: NodeKind.MODAL,
    NodeKind.TAB: NodeKind.TABS,
    NodeKind.CRUMB: NodeKind.BREADCRUMBS,
    NodeKind.TRIGGER: NodeKind.DROPDOWN,
    NodeKind.MENU: NodeKind.DROPDOWN,
    NodeKind.MENU_ITEM: NodeKind.MENU,
    NodeKind.COLUMN: NodeKind.COLUMNS,
    NodeKind.CARD_HEADER: NodeKind.CARD,
    NodeKind.CARD_BODY: NodeKind.CARD,
    NodeKind.CARD_FOOTER: NodeKind.CARD,
    NodeKind.PHRASE: NodeKind.LESSON_TEXT,
    NodeKind.TERM: NodeKind.LESSON_TEXT,
}
