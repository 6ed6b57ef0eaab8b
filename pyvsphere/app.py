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
Command line interface: vsphere <METHOD> [PARAMETERS...]

Connection parameters come from the VSPHERE_HOST, VSPHERE_USER and
VSPHERE_PASS environment variables.
"""

import ast
import inspect
import logging
import os
import pprint
import sys

import pyvsphere
from pyvsphere import const
from pyvsphere import driver
from pyvsphere import error_util
from pyvsphere import vif
from pyvsphere import vmops
from pyvsphere import volumeops

LOG = logging.getLogger(__name__)

PROG = 'vsphere'

# Driver attributes that are not API methods
_HIDDEN = ('close', 'session')

_VM_METHODS = (
    'get_vm_path', 'get_vm_powerstate', 'tools_is_running', 'poweron_vm',
    'poweroff_vm', 'shutdown_vm', 'reboot_vm', 'list_snapshots',
    'create_snapshot', 'revert_to_current_snapshot', 'reconfigure_vm',
    'connect_cdrom', 'disconnect_cdrom', 'connect_floppy',
    'disconnect_floppy', 'add_disk', 'create_disk', 'remove_disk',
    'mount_tools_installer', 'unregister_vm', 'clone', 'linked_clone',
    'run_in_vm', 'list_vm_processes',
)

_VALUE_CHOICES = {
    ('add_nas_storage', 'access_mode'): ('readWrite', 'readOnly'),
    ('add_nas_storage', 'type'): ('NFS', 'NFS41', 'CIFS'),
    ('add_disk', 'mode'): ('persistent', 'nonpersistent',
                           'independent_nonpersistent',
                           'independent_persistent', 'append', 'undoable'),
}

_VALUE_TYPES = {
    'datastore': 'Datastore',
    'datacenter': 'Datacenter',
    'cluster': 'ClusterComputeResource',
    'host': 'HostSystem',
    'host_name': 'HostSystem',
}

_TRUE = ('1', 'true', 'yes', 'on')


def list_methods():
    """Names of the driver methods callable from the command line."""
    return sorted(name for name, _ in
                  inspect.getmembers(driver.VMwareVSphereDriver,
                                     inspect.isfunction)
                  if not name.startswith('_') and name not in _HIDDEN)


def _parameters(method):
    signature = inspect.signature(getattr(driver.VMwareVSphereDriver,
                                          method))
    return [param for name, param in signature.parameters.items()
            if name != 'self']


def literal(arg):
    """Evaluates {...} and [...] arguments as Python literals."""
    stripped = arg.strip()
    if (stripped.startswith('{') and stripped.endswith('}')) or \
            (stripped.startswith('[') and stripped.endswith(']')):
        try:
            return ast.literal_eval(stripped)
        except (ValueError, SyntaxError) as excep:
            raise error_util.ValidationError(
                "Error in argument '%s': %s" % (arg, excep))
    return arg


def split_args(method, args):
    """
    Splits flat string arguments into positional and named ones.

    Required parameters are taken positionally; after them a token naming
    a parameter starts the name/value pairs. Parameters with a boolean
    default take 1/true/yes/on as true.
    """
    params = _parameters(method)
    by_name = dict((param.name, param) for param in params
                   if param.kind in (param.POSITIONAL_OR_KEYWORD,
                                     param.KEYWORD_ONLY))
    required = len([param for param in params
                    if param.kind == param.POSITIONAL_OR_KEYWORD and
                    param.default is param.empty])
    args = list(args)
    positional = []
    while args:
        if (len(positional) >= required and args[0] in by_name and
                len(args) > 1):
            break
        positional.append(literal(args.pop(0)))
    if len(args) % 2:
        raise error_util.ValidationError(
            "Parameter '%s' has no value" % args[-1])
    named = {}
    for name, value in zip(args[::2], args[1::2]):
        if name not in by_name:
            raise error_util.ValidationError(
                "Unknown parameter '%s' for %s" % (name, method))
        named[name] = literal(value)

    def _convert(param, value):
        if isinstance(param.default, bool) and isinstance(value, str):
            return value.lower() in _TRUE
        return value

    names = [param.name for param in params
             if param.kind == param.POSITIONAL_OR_KEYWORD]
    positional = [_convert(by_name[name], value)
                  for name, value in zip(names, positional)] + \
        positional[len(names):]
    named = dict((name, _convert(by_name[name], value))
                 for name, value in named.items())
    try:
        inspect.signature(getattr(driver.VMwareVSphereDriver, method)).bind(
            None, *positional, **named)
    except TypeError as excep:
        raise error_util.ValidationError("%s: %s" % (method, excep))
    return positional, named


def setup_logging(debug=False, stream=None):
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s: %(message)s'))
    logger = logging.getLogger('pyvsphere')
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return handler


def _is_true(value):
    return bool(value) and value.lower() in _TRUE


class App(object):
    """The vsphere command."""

    def __init__(self, stdout=None, stderr=None, environ=None,
                 driver_factory=driver.VMwareVSphereDriver):
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.environ = os.environ if environ is None else environ
        self._driver_factory = driver_factory
        self._vsphere = None

    def _print(self, *lines, **kwargs):
        stream = kwargs.get('stream', self.stdout)
        for line in lines:
            stream.write('%s\n' % line)

    def vsphere(self):
        """The driver configured from the environment."""
        if self._vsphere is not None:
            return self._vsphere
        for name in ('VSPHERE_HOST', 'VSPHERE_USER', 'VSPHERE_PASS'):
            if not self.environ.get(name):
                raise error_util.ValidationError(
                    "Required environment variable '%s' isn't defined"
                    % name)
        cacert = self.environ.get('VSPHERE_CACERT') or None
        self._vsphere = self._driver_factory(
            self.environ['VSPHERE_HOST'],
            self.environ['VSPHERE_USER'],
            self.environ['VSPHERE_PASS'],
            insecure=cacert is None,
            cacert=cacert,
            cookie_file=self.environ.get('VSPHERE_COOKIE_FILE') or None,
            preserve_session=bool(self.environ.get('VSPHERE_COOKIE_FILE')))
        return self._vsphere

    def run(self, *args):
        """Runs the command and returns the exit status."""
        if not args:
            self.show_usage()
            return 1
        method, args = args[0], args[1:]
        if method == 'comp':
            return self.completion(*args)
        if method == 'help':
            return self.help(*args)
        if method not in list_methods():
            self._print("Error: Method '%s' not found." % method,
                        stream=self.stderr)
            self.show_usage()
            return 1
        handler = setup_logging(
            _is_true(self.environ.get('VSPHERE_DEBUG', '')), self.stderr)
        try:
            positional, named = split_args(method, args)
            result = getattr(self.vsphere(), method)(*positional, **named)
        except error_util.VimException as excep:
            self._print("Error: %s" % excep, stream=self.stderr)
            return 1
        finally:
            self.close()
            logging.getLogger('pyvsphere').removeHandler(handler)
        self.show_result(result)
        return 0

    def show_result(self, result):
        if result is None:
            return
        if isinstance(result, (list, tuple)) and \
                not any(isinstance(item, (dict, list, tuple))
                        for item in result):
            self._print(*result)
        elif isinstance(result, (dict, list, tuple)):
            self._print(pprint.pformat(result))
        else:
            self._print(result)

    def completion(self, index=None, *words):
        """Prints completion candidates for the word at `index`.

        words[0] is the command name, words[1] the method.
        """
        try:
            index = int(index)
        except (TypeError, ValueError):
            return 1
        words = list(words) + [''] * (index + 1 - len(words))
        method = words[1] if len(words) > 1 else ''
        prev = words[index - 1] if index > 0 else ''
        if index == 1:
            self._print(' '.join(['help'] + list_methods()))
            return 0
        if method == 'help':
            if index == 2:
                self._print(' '.join(list_methods()))
            return 0
        if method not in list_methods():
            return 0
        if index == 2:
            if method == 'list':
                self._print(' '.join(const.MO_TYPES))
            elif method in ('get_moid', 'delete'):
                mo_type = words[3] or 'VirtualMachine'
                self._complete_names(mo_type)
            elif method == 'get_datastore_url':
                self._complete_names('Datastore')
            elif method in _VM_METHODS:
                self._complete_names('VirtualMachine')
            elif method not in ('remove_snapshot', 'revert_to_snapshot'):
                self._complete_parameters(method, words[2:index])
            return 0
        if index == 3 and method in ('get_moid', 'delete'):
            self._print(' '.join(const.MO_TYPES))
            return 0
        choices = _VALUE_CHOICES.get((method, prev))
        if choices:
            self._print(' '.join(choices))
            return 0
        param_names = [param.name for param in _parameters(method)]
        if prev in param_names:
            if prev in _VALUE_TYPES:
                self._complete_names(_VALUE_TYPES[prev])
            return 0
        self._complete_parameters(method, words[2:index])
        return 0

    def _complete_names(self, mo_type):
        try:
            names = self.vsphere().list(mo_type)
        except error_util.VimException as excep:
            LOG.debug("Can't complete names of %s: %s", mo_type, excep)
            return
        finally:
            self.close()
        self._print(' '.join(names))

    def close(self):
        if self._vsphere is not None:
            self._vsphere.close()
            self._vsphere = None

    def _complete_parameters(self, method, given):
        params = [param.name for param in _parameters(method)
                  if param.default is not param.empty and
                  param.name not in given]
        if params:
            self._print(' '.join(params))

    def help(self, method=None):
        """Prints usage of the method and its documentation."""
        if not method:
            self.show_usage()
            return 0
        if method not in list_methods():
            self._print("Error: Method '%s' not found." % method,
                        stream=self.stderr)
            self.show_usage()
            return 1
        usage = []
        for param in _parameters(method):
            if param.kind == param.VAR_POSITIONAL:
                usage.append('[%s...]' % param.name)
            elif param.default is param.empty:
                usage.append('<%s>' % param.name)
            else:
                usage.append('[%s %r]' % (param.name, param.default))
        self._print('%s %s %s' % (PROG, method, ' '.join(usage)), '')
        self._print(_method_doc(method))
        return 0

    def show_usage(self):
        self._print(
            "%s - CLI for the vSphere API, pyvsphere version %s" % (
                PROG, pyvsphere.__version__),
            "",
            "Usage: %s <METHOD> [[PARAMETER1] [PARAMETER2]...]" % PROG,
            "",
            "Available methods:",
            stream=self.stderr)
        self._print(*list_methods(), stream=self.stderr)
        self._print(
            "",
            "Run '%s help <METHOD>' to see a method description" % PROG,
            stream=self.stderr)


def _method_doc(method):
    """The most detailed docstring among the method implementations."""
    docs = [inspect.getdoc(getattr(driver.VMwareVSphereDriver, method))]
    for owner in (vmops.VMwareVMOps, volumeops.VMwareVolumeOps, vif):
        impl = getattr(owner, method, None)
        if impl is not None and inspect.getdoc(impl):
            docs.append(inspect.getdoc(impl))
    docs = [doc for doc in docs if doc]
    if not docs:
        return ''
    return max(docs, key=len)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    return App().run(*argv)
