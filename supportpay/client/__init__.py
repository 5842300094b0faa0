from supportpay.client.form import FormStatus, PaymentForm

__all__ = ['FormStatus', 'PaymentForm']
