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

"""
Exception classes and SOAP fault names for the vSphere API.
"""

NOT_AUTHENTICATED = 'NotAuthenticated'
INVALID_LOGIN = 'InvalidLogin'
NO_PERMISSION = 'NoPermission'
MANAGED_OBJECT_NOT_FOUND = 'ManagedObjectNotFound'


class VimException(Exception):
    """The base exception class for all exceptions this library raises."""

    def __init__(self, msg):
        super(VimException, self).__init__(msg)
        self.msg = msg


class TransportError(VimException):
    """Network level failure: connection refused, timeout, TLS error."""
    pass


class ServerError(VimException):
    """Non-2xx HTTP reply that does not carry a SOAP fault."""

    def __init__(self, http_status, body):
        if isinstance(body, bytes):
            body = body.decode('utf-8', 'replace')
        super(ServerError, self).__init__(
            "Host returned an error: HTTP %s" % http_status)
        self.http_status = http_status
        self.body = body


class VimFaultException(VimException):
    """SOAP fault returned by the server."""

    def __init__(self, fault_list, msg, details=None):
        super(VimFaultException, self).__init__(msg)
        self.fault_list = list(fault_list)
        self.details = details or {}

    def __str__(self):
        if self.fault_list:
            return "%s: %s" % (', '.join(self.fault_list), self.msg)
        return self.msg


class AuthError(VimException):
    """Bad credentials, missing permission or a session that can't be
    re-established."""
    pass


class ProtocolError(VimException):
    """The server response doesn't match the expected contract."""
    pass


class TaskError(VimException):
    """A server-side task finished in the error state."""

    def __init__(self, task, fault_message, info=None):
        super(TaskError, self).__init__(
            "Task %s completed with an error: %s" % (task, fault_message))
        self.task = task
        self.fault_message = fault_message
        self.info = info


class TaskTimeout(VimException):
    """The task did not reach a terminal state in time.

    The task itself is left running on the server.
    """

    def __init__(self, task, elapsed):
        super(TaskTimeout, self).__init__(
            "Task %s isn't finished in %.1f seconds" % (task, elapsed))
        self.task = task
        self.elapsed = elapsed


class ValidationError(VimException, ValueError):
    """Caller supplied malformed arguments."""
    pass


class InvalidSpec(ValidationError):
    """A traversal specification failed local validation."""
    pass


class ManagedObjectNotFoundError(VimException):
    """No managed object matched where exactly one was required."""

    def __init__(self, mo_type, name=None):
        if name is None:
            msg = "Can't find a managed object of type %s" % mo_type
        else:
            msg = "Can't find %s with name '%s'" % (mo_type, name)
        super(ManagedObjectNotFoundError, self).__init__(msg)
        self.mo_type = mo_type
        self.name = name
