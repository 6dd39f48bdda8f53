
import weakref


def ref(thing, callback=None):
    """ Return a weak reference to the supplied argument, regardless of
        whether it is a plain function or a bound method. Push channel
        handlers are held this way so that registering a handler does not
        keep its owner alive. The optional *callback* is invoked with the
        reference when the referent goes away.
    """

    try:
        thing.__func__
        thing.__self__
    except AttributeError:
        return weakref.ref(thing, callback)
    else:
        return weakref.WeakMethod(thing, callback)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
