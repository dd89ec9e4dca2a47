# optics_corner/exceptions.py


class OpticsStockError(Exception):
    pass


class InsufficientOpticsStockError(OpticsStockError):

    def __init__(self, item, requested):
        self.item = item
        self.requested = requested
        super().__init__(f'Only {item.stock_quantity} of {item.display_name} in stock, {requested} requested.')
