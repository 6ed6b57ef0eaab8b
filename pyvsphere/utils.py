# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""Utilities shared by the vSphere session and operations."""

import logging
import time

from eventlet import event
from eventlet import greenthread

from pyvsphere import error_util

LOG = logging.getLogger(__name__)


class LoopingCallDone(Exception):
    """Exception to break out and stop a LoopingCall.

    The poll-function passed to LoopingCall can raise this exception to
    break out of the loop normally. This is somewhat analogous to
    StopIteration.

    An optional return-value can be included as the argument to the
    exception; this return-value will be returned by LoopingCall.wait()
    """

    def __init__(self, retvalue=True):
        """:param retvalue: Value that LoopingCall.wait() should return."""
        self.retvalue = retvalue


class FixedIntervalLoopingCall(object):
    """Calls f(*args, **kw) every `interval` seconds in a green thread."""

    def __init__(self, f=None, *args, **kw):
        self.args = args
        self.kw = kw
        self.f = f
        self._running = False
        self.done = None

    def start(self, interval, initial_delay=None):
        self._running = True
        done = event.Event()

        def _inner():
            if initial_delay:
                greenthread.sleep(initial_delay)

            try:
                while self._running:
                    start = time.monotonic()
                    self.f(*self.args, **self.kw)
                    if not self._running:
                        break
                    delay = interval - (time.monotonic() - start)
                    if delay <= 0:
                        LOG.debug('task run outlasted interval by %.2f sec',
                                  -delay)
                    greenthread.sleep(delay if delay > 0 else 0)
            except LoopingCallDone as e:
                self.stop()
                done.send(e.retvalue)
            except Exception as e:
                LOG.debug('in fixed duration looping call: %s', e)
                done.send_exception(e)
                return
            else:
                done.send(True)

        self.done = done

        greenthread.spawn(_inner)
        return self.done

    def stop(self):
        self._running = False

    def wait(self):
        return self.done.wait()


def build_datastore_path(datastore_name, path):
    """Builds the datastore compliant path."""
    return "[%s] %s" % (datastore_name, path)


def check_required(**params):
    """Raises ValidationError naming the first parameter that is None."""
    for name, value in params.items():
        if value is None:
            raise error_util.ValidationError(
                "Required parameter '%s' isn't defined" % name)
