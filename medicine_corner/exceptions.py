# medicine_corner/exceptions.py


class StockError(Exception):
    pass


class InsufficientStockError(StockError):

    def __init__(self, stock, requested):
        self.stock = stock
        self.requested = requested
        super().__init__(
            f'Only {stock.available_quantity} {stock.medicine.unit} of {stock.medicine.name} '
            f'(batch {stock.batch_number or "-"}) available, {requested} requested.'
        )
