"""
Value semantics for the event objects published by connectors and clients.
"""


class AttributeEqualityMixin:
    """ Instances of the same class are equal when their attributes are equal. """

    def __eq__(self, other):
        if not isinstance(other, type(self)):
            return NotImplemented
        return vars(self) == vars(other)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None


class AttributeStringMixin:
    """
    Describes an instance by its class name and attributes.

    >>> class Hangup(AttributeStringMixin):
    ...     def __init__(self):
    ...         self.channel = 'SIP/100-0001'
    ...         self.cause = 16
    >>> str(Hangup())
    "Hangup(cause=16, channel='SIP/100-0001')"
    """

    def __str__(self):
        attributes = ', '.join('%s=%r' % (name, value) for name, value in sorted(vars(self).items()))
        return '%s(%s)' % (type(self).__name__, attributes)
