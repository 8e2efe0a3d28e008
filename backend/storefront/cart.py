"""
Shopping cart state for the storefront.

``CartStore`` keeps line items and a running total and persists
``{items, total}`` through a pluggable storage backend. UI flags (cart
open, checkout visible, active category) live only on the store instance.

    cart = CartStore(SessionCartStorage(request.session, namespace=org.pk))
    cart.add_to_cart({'id': 3, 'name': 'Fresas', 'price': 1500}, 2)
"""
from django.conf import settings

DEFAULT_CART_STORAGE_KEY = 'strawberry-cart-storage'


def get_cart_storage_key():
    return getattr(settings, 'CART_STORAGE_KEY', DEFAULT_CART_STORAGE_KEY)


class MemoryCartStorage:
    """Keeps the persisted cart in process memory"""

    def __init__(self, initial=None):
        self.data = dict(initial) if initial else None

    def load(self):
        return self.data

    def save(self, state):
        self.data = state

    def clear(self):
        self.data = None


class SessionCartStorage:
    """Persists the cart in a Django session, one entry per namespace (organization)"""

    def __init__(self, session, namespace=None):
        self.session = session
        key = get_cart_storage_key()
        self.key = f"{key}:{namespace}" if namespace is not None else key

    def load(self):
        return self.session.get(self.key)

    def save(self, state):
        self.session[self.key] = state
        self.session.modified = True

    def clear(self):
        if self.key in self.session:
            del self.session[self.key]


class CartStore:
    """
    Cart line items plus their total.

    After every operation ``total == sum(price * quantity)`` and no two
    lines share an ``id``.
    """

    PERSISTED_FIELDS = ('items', 'total')

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else MemoryCartStorage()
        persisted = self.storage.load() or {}
        self.items = [dict(item) for item in persisted.get('items') or []]
        self.total = self._compute_total(self.items)
        self.is_open = False
        self.show_checkout = False
        self.active_category = None

    @staticmethod
    def _compute_total(items):
        return sum(item['price'] * item['quantity'] for item in items)

    def _find(self, item_id):
        for item in self.items:
            if item['id'] == item_id:
                return item
        return None

    def _persist(self):
        self.storage.save({'items': [dict(item) for item in self.items], 'total': self.total})

    def add_to_cart(self, item, quantity=1):
        """
        Add ``quantity`` units of ``item`` (a mapping with id, name, price and
        optionally image_url). Missing or non-positive quantities count as 1.
        """
        if not quantity or quantity < 1:
            quantity = 1

        existing = self._find(item['id'])
        if existing is not None:
            existing['quantity'] += quantity
            self.total = self._compute_total(self.items)
        else:
            line = {
                'id': item['id'],
                'name': item.get('name', ''),
                'price': item['price'],
                'image_url': item.get('image_url'),
                'quantity': quantity,
            }
            self.items.append(line)
            self.total += line['price'] * line['quantity']
        self._persist()
        return self.state()

    def remove_from_cart(self, item_id):
        self.items = [item for item in self.items if item['id'] != item_id]
        self.total = self._compute_total(self.items)
        self._persist()
        return self.state()

    def update_quantity(self, item_id, quantity):
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            return self.remove_from_cart(item_id)
        item = self._find(item_id)
        if item is not None:
            item['quantity'] = quantity
        self.total = self._compute_total(self.items)
        self._persist()
        return self.state()

    def clear_cart(self):
        self.items = []
        self.total = 0
        self._persist()
        return self.state()

    def toggle_cart(self):
        self.is_open = not self.is_open
        return self.is_open

    def set_show_checkout(self, show):
        self.show_checkout = bool(show)

    def set_active_category(self, category):
        self.active_category = category

    def clear_active_category(self):
        self.active_category = None

    @property
    def item_count(self):
        return sum(item['quantity'] for item in self.items)

    def contains(self, item_id):
        return self._find(item_id) is not None

    def state(self):
        return {
            'items': [dict(item) for item in self.items],
            'total': self.total,
            'item_count': self.item_count,
            'is_open': self.is_open,
            'show_checkout': self.show_checkout,
            'active_category': self.active_category,
        }
