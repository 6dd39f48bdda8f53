import logging

log_format = '%(asctime)s [%(levelname)s] %(message)s'


def setup(level=logging.INFO, filename=None, name='gibberlink'):
    """ Attach a console handler, and optionally a file handler, to the
        package logger. Calling this more than once does not add duplicate
        handlers. Library code never calls this; it only logs via
        ``logging.getLogger(__name__)``.
    """

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter(log_format)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if filename is not None:
            file_handler = logging.FileHandler(filename)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
