import pytest

from page_dom import PropertyName

DEFAULT_STYLE = {
    "color": "rgb(0, 0, 0)",
    "background-color": "rgba(0, 0, 0, 0)",
    "background-image": "none",
    "background-repeat": "repeat",
    "font-weight": "400",
}


class FakeElement:
    def __init__(self, tag, parent=None, **style):
        self.tag = tag
        self.class_name = ""
        self.parent = parent
        self.style = dict(DEFAULT_STYLE)
        self.style.update({k.replace("_", "-"): v for k, v in style.items()})
        self.has_text = False

    def __repr__(self):
        return f"<FakeElement {self.tag}>"


class FakeDocument:
    """
    In-memory element tree that is its own style reader and writer, and logs
    every read and write in order.
    """

    def __init__(self):
        self.root = FakeElement("HTML", background_color="rgba(0, 0, 0, 0)")
        self.elements = [self.root]
        self.events = []
        self.written = []
        self.flushes = 0

    def add(self, tag, parent=None, text=False, **style):
        el = FakeElement(tag, parent or self.root, **style)
        el.has_text = text
        self.elements.append(el)
        return el

    # ElementTree
    def qualifying_elements(self):
        return [el for el in self.elements if el.has_text]

    def parent(self, element):
        return element.parent

    def document_root(self):
        return self.root

    # StyleReader
    def get(self, element, prop):
        name = PropertyName(prop).value
        self.events.append(("read", element, name))
        return element.style[name]

    def reads(self, element=None, prop=None):
        return [
            e for e in self.events
            if e[0] == "read"
            and (element is None or e[1] is element)
            and (prop is None or e[2] == prop)
        ]

    # StyleWriter
    def set(self, element, prop, value):
        self.events.append(("write", element, prop))
        self.written.append((element, prop, value))

    def flush(self):
        self.flushes += 1
        return len(self.written)

    def written_value(self, element, prop):
        values = [v for el, p, v in self.written if el is element and p == prop]
        return values[-1] if values else None


@pytest.fixture
def doc():
    return FakeDocument()
